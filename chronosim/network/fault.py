"""Fault injection: fault kinds, fault schedules and the active fault state.

Instants and durations are integer nanoseconds.
"""

from __future__ import annotations

import bisect
import random
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

__all__ = [
    "ClockJump",
    "ClockSkew",
    "Corrupt",
    "Crash",
    "Delay",
    "DiskReadError",
    "DiskWriteError",
    "Drop",
    "Duplicate",
    "Fault",
    "FaultSchedule",
    "FaultState",
    "FullDisk",
    "Heal",
    "Partition",
    "Restart",
    "clock_jump",
    "clock_jump_forward",
    "clock_skew",
    "corrupt",
    "crash",
    "delay",
    "disk_read_error",
    "disk_write_error",
    "drop",
    "duplicate",
    "full_disk",
    "heal",
    "partition",
    "restart",
    "split",
]

_U64_MAX = 2**64 - 1
_MIN_SKEW = 0.01


def _clamp_rate(rate: float) -> float:
    return min(1.0, max(0.0, rate))


class Fault:
    """Base class of every fault that can be injected into a simulation."""

    __slots__ = ()


@dataclass(frozen=True)
class Partition(Fault):
    """Only nodes within the same group can communicate."""

    groups: tuple[tuple[int, ...], ...]


@dataclass(frozen=True)
class Drop(Fault):
    """Extra drop probability on all links."""

    rate: float


@dataclass(frozen=True)
class Delay(Fault):
    """Extra latency range on all links."""

    min_delay: int
    max_delay: int


@dataclass(frozen=True)
class Duplicate(Fault):
    """Extra duplication probability on all links."""

    rate: float


@dataclass(frozen=True)
class ClockSkew(Fault):
    """A node's clock runs at ``rate`` times normal speed."""

    node: int
    rate: float


@dataclass(frozen=True)
class ClockJump(Fault):
    """A node's clock jumps by ``delta`` nanoseconds (negative jumps backward)."""

    node: int
    delta: int


@dataclass(frozen=True)
class Crash(Fault):
    """A node crashes."""

    node: int


@dataclass(frozen=True)
class Restart(Fault):
    """A crashed node restarts."""

    node: int


@dataclass(frozen=True)
class DiskReadError(Fault):
    """Disk reads fail with the given probability."""

    rate: float


@dataclass(frozen=True)
class DiskWriteError(Fault):
    """Disk writes fail with the given probability."""

    rate: float


@dataclass(frozen=True)
class FullDisk(Fault):
    """Every disk write fails."""


@dataclass(frozen=True)
class Corrupt(Fault):
    """Data is corrupted with the given probability."""

    rate: float


@dataclass(frozen=True)
class Heal(Fault):
    """Remove every active fault."""


def partition(groups: Iterable[Iterable[int]]) -> Partition:
    """Partition the network into the given groups."""
    return Partition(tuple(tuple(group) for group in groups))


def split(group_a: Iterable[int], group_b: Iterable[int]) -> Partition:
    """Split the network into two groups."""
    return partition([group_a, group_b])


def drop(rate: float) -> Drop:
    """Drop fault; the rate is clamped to [0, 1]."""
    return Drop(_clamp_rate(rate))


def delay(min_delay: int, max_delay: int) -> Delay:
    """Delay fault adding between ``min_delay`` and ``max_delay`` nanoseconds."""
    return Delay(min_delay, max_delay)


def duplicate(rate: float) -> Duplicate:
    """Duplicate fault; the rate is clamped to [0, 1]."""
    return Duplicate(_clamp_rate(rate))


def clock_skew(node: int, rate: float) -> ClockSkew:
    """Clock skew fault; the rate is at least 0.01."""
    return ClockSkew(node, max(rate, _MIN_SKEW))


def clock_jump(node: int, delta: int) -> ClockJump:
    """Clock jump of ``delta`` nanoseconds."""
    return ClockJump(node, delta)


def clock_jump_forward(node: int, amount: int) -> ClockJump:
    """Clock jump forward by ``amount`` nanoseconds."""
    return ClockJump(node, amount)


def crash(node: int) -> Crash:
    """Crash fault."""
    return Crash(node)


def restart(node: int) -> Restart:
    """Restart fault."""
    return Restart(node)


def disk_read_error(rate: float) -> DiskReadError:
    """Disk read error fault; the rate is clamped to [0, 1]."""
    return DiskReadError(_clamp_rate(rate))


def disk_write_error(rate: float) -> DiskWriteError:
    """Disk write error fault; the rate is clamped to [0, 1]."""
    return DiskWriteError(_clamp_rate(rate))


def full_disk() -> FullDisk:
    """Full disk fault."""
    return FullDisk()


def corrupt(rate: float) -> Corrupt:
    """Data corruption fault; the rate is clamped to [0, 1]."""
    return Corrupt(_clamp_rate(rate))


def heal() -> Heal:
    """Fault that removes all other faults."""
    return Heal()


class FaultSchedule:
    """Faults to inject at given instants, kept in time order."""

    def __init__(self) -> None:
        self._events: dict[int, list[Fault]] = {}
        self._times: list[int] = []

    def add(self, at: int, fault: Fault) -> None:
        """Schedule ``fault`` at instant ``at``."""
        if at not in self._events:
            bisect.insort(self._times, at)
            self._events[at] = []
        self._events[at].append(fault)

    def faults_at(self, instant: int) -> list[Fault]:
        """Faults scheduled at exactly ``instant``."""
        return list(self._events.get(instant, ()))

    def next_fault_time(self, after: int) -> Optional[int]:
        """First scheduled instant strictly after ``after``, or None."""
        index = bisect.bisect_right(self._times, after)
        return self._times[index] if index < len(self._times) else None

    def take_faults_until(self, until: int) -> list[tuple[int, Fault]]:
        """Remove and return every fault scheduled at or before ``until``."""
        cut = bisect.bisect_right(self._times, until)
        due, self._times = self._times[:cut], self._times[cut:]
        return [(instant, fault) for instant in due for fault in self._events.pop(instant)]

    def is_empty(self) -> bool:
        """True if nothing is scheduled."""
        return not self._events

    def __len__(self) -> int:
        return sum(len(faults) for faults in self._events.values())

    def __repr__(self) -> str:
        return f"FaultSchedule({len(self)} faults)"


@dataclass
class FaultState:
    """The faults currently in effect."""

    partition_groups: list[frozenset[int]] = field(default_factory=list)
    drop_rate: float = 0.0
    delay: Optional[tuple[int, int]] = None
    duplicate_rate: float = 0.0
    clock_skews: dict[int, float] = field(default_factory=dict)
    clock_offsets: dict[int, int] = field(default_factory=dict)
    crashed_nodes: set[int] = field(default_factory=set)
    disk_read_error_rate: float = 0.0
    disk_write_error_rate: float = 0.0
    full_disk: bool = False
    corruption_rate: float = 0.0

    def _clear(self) -> None:
        self.partition_groups = []
        self.drop_rate = 0.0
        self.delay = None
        self.duplicate_rate = 0.0
        self.clock_skews = {}
        self.clock_offsets = {}
        self.crashed_nodes = set()
        self.disk_read_error_rate = 0.0
        self.disk_write_error_rate = 0.0
        self.full_disk = False
        self.corruption_rate = 0.0

    def apply(self, fault: Fault) -> Optional[Fault]:
        """Apply ``fault``; return it if it needs handling elsewhere (crash, restart)."""
        match fault:
            case Partition(groups):
                self.partition_groups = [frozenset(group) for group in groups]
            case Drop(rate):
                self.drop_rate = rate
            case Delay(min_delay, max_delay):
                self.delay = (min_delay, max_delay)
            case Duplicate(rate):
                self.duplicate_rate = rate
            case ClockSkew(node, rate):
                self.clock_skews[node] = rate
            case ClockJump(node, delta):
                self.clock_offsets[node] = self.clock_offsets.get(node, 0) + delta
            case Crash(node):
                self.crashed_nodes.add(node)
                return fault
            case Restart(node):
                self.crashed_nodes.discard(node)
                return fault
            case DiskReadError(rate):
                self.disk_read_error_rate = rate
            case DiskWriteError(rate):
                self.disk_write_error_rate = rate
            case FullDisk():
                self.full_disk = True
            case Corrupt(rate):
                self.corruption_rate = rate
            case Heal():
                self._clear()
            case _:
                raise TypeError(f"unknown fault: {fault!r}")
        return None

    def can_communicate(self, src: int, dst: int) -> bool:
        """True unless a partition separates ``src`` from ``dst``."""
        if not self.partition_groups:
            return True
        return any(src in group and dst in group for group in self.partition_groups)

    def has_active_faults(self) -> bool:
        """True if any fault is in effect."""
        return bool(
            self.partition_groups
            or self.drop_rate > 0.0
            or self.delay is not None
            or self.duplicate_rate > 0.0
            or self.clock_skews
            or self.clock_offsets
            or self.crashed_nodes
            or self.disk_read_error_rate > 0.0
            or self.disk_write_error_rate > 0.0
            or self.full_disk
            or self.corruption_rate > 0.0
        )

    def clock_skew(self, node: int) -> float:
        """Clock rate of ``node``; 1.0 when unskewed."""
        return self.clock_skews.get(node, 1.0)

    def clock_offset(self, node: int) -> int:
        """Accumulated clock jump of ``node`` in nanoseconds."""
        return self.clock_offsets.get(node, 0)

    def adjusted_time(self, node: int, base_nanos: int, elapsed_nanos: int) -> int:
        """Node-local time: base plus skewed elapsed time plus jumps, within u64 range."""
        skewed_elapsed = int(elapsed_nanos * self.clock_skew(node))
        total = base_nanos + skewed_elapsed + self.clock_offset(node)
        return min(_U64_MAX, max(0, total))

    def clear_clock_skew(self, node: int) -> None:
        """Remove the clock skew of ``node``."""
        self.clock_skews.pop(node, None)

    def clear_clock_offset(self, node: int) -> None:
        """Remove the clock offset of ``node``."""
        self.clock_offsets.pop(node, None)

    def is_crashed(self, node: int) -> bool:
        """True if ``node`` is crashed."""
        return node in self.crashed_nodes

    def should_fail_read(self, rng: random.Random) -> bool:
        """Decide whether a disk read fails."""
        return self.disk_read_error_rate > 0.0 and rng.random() < self.disk_read_error_rate

    def should_fail_write(self, rng: random.Random) -> bool:
        """Decide whether a disk write fails; always when the disk is full."""
        return self.full_disk or (
            self.disk_write_error_rate > 0.0 and rng.random() < self.disk_write_error_rate
        )

    def should_corrupt(self, rng: random.Random) -> bool:
        """Decide whether data is corrupted."""
        return self.corruption_rate > 0.0 and rng.random() < self.corruption_rate

    def corrupt_data(self, data: bytearray, rng: random.Random) -> None:
        """Flip one random bit of ``data`` in place; empty data is left alone."""
        if not data:
            return
        index = rng.randrange(len(data))
        bit = rng.randrange(8)
        data[index] ^= 1 << bit


def _as_groups(groups: Sequence[Sequence[int]]) -> tuple[tuple[int, ...], ...]:
    return tuple(tuple(group) for group in groups)