[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chronosim"
version = "0.1.0"
description = "Deterministic simulation building blocks for testing distributed systems"
requires-python = ">=3.10"
dependencies = []
keywords = ["testing", "simulation", "distributed-systems", "deterministic", "fault-injection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["chronosim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
