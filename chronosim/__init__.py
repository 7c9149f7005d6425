"""Deterministic simulation building blocks for testing distributed systems."""

__version__ = "0.1.0"