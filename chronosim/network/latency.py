"""Latency models for simulated network links.

All durations are integer nanoseconds.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

__all__ = [
    "BimodalLatency",
    "FixedLatency",
    "LatencyModel",
    "NormalLatency",
    "UniformLatency",
    "datacenter",
    "default_latency",
    "lan",
    "wan",
]

_MICROS = 1_000
_MILLIS = 1_000_000


class LatencyModel(ABC):
    """Distribution from which link latencies are drawn."""

    @abstractmethod
    def sample(self, rng: random.Random) -> int:
        """Draw one latency in nanoseconds."""


@dataclass(frozen=True)
class FixedLatency(LatencyModel):
    """The same latency for every message."""

    latency: int

    def sample(self, rng: random.Random) -> int:
        return self.latency


@dataclass(frozen=True)
class UniformLatency(LatencyModel):
    """Uniformly distributed latency in ``[min_latency, max_latency)``."""

    min_latency: int
    max_latency: int

    def sample(self, rng: random.Random) -> int:
        if self.min_latency >= self.max_latency:
            return self.min_latency
        return rng.randrange(self.min_latency, self.max_latency)


@dataclass(frozen=True)
class NormalLatency(LatencyModel):
    """Normally distributed latency, clamped at zero."""

    mean: int
    stddev: int

    def sample(self, rng: random.Random) -> int:
        if self.stddev <= 0:
            return self.mean
        return int(max(0.0, rng.gauss(self.mean, self.stddev)))


@dataclass(frozen=True)
class BimodalLatency(LatencyModel):
    """Either a fast or a slow latency; slow with probability ``slow_pct``."""

    fast: int
    slow: int
    slow_pct: float

    def sample(self, rng: random.Random) -> int:
        return self.slow if rng.random() < self.slow_pct else self.fast


def lan() -> UniformLatency:
    """Local network: 1-5 ms uniform."""
    return UniformLatency(1 * _MILLIS, 5 * _MILLIS)


def wan() -> UniformLatency:
    """Wide-area network: 50-150 ms uniform."""
    return UniformLatency(50 * _MILLIS, 150 * _MILLIS)


def datacenter() -> BimodalLatency:
    """Same rack 100 us, cross-rack 1 ms, 30% cross-rack."""
    return BimodalLatency(100 * _MICROS, 1 * _MILLIS, 0.3)


def default_latency() -> FixedLatency:
    """Fixed 1 ms latency."""
    return FixedLatency(1 * _MILLIS)