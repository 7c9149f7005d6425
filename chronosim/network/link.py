"""Point-to-point simulated links with latency, loss, duplication and bandwidth limits.

Instants and durations are integer nanoseconds.
"""

from __future__ import annotations

import random
from collections import deque
from typing import Optional

from chronosim.network.latency import LatencyModel, default_latency
from chronosim.network.message import InFlightMessage, Message

__all__ = ["Link"]

_U64_MAX = 2**64 - 1
_BANDWIDTH_WINDOW = 1_000_000_000


def _clamp_rate(rate: float) -> float:
    return min(1.0, max(0.0, rate))


def _saturating_add(instant: int, duration: int) -> int:
    return min(_U64_MAX, instant + duration)


class Link:
    """A one-way link between two nodes.

    Models latency, packet loss, duplication, reordering and a bandwidth
    limit. All randomness comes from a generator seeded at construction,
    so a link behaves the same way every time it is given the same input.
    """

    def __init__(self, latency: LatencyModel, seed: int) -> None:
        self.latency = latency
        self.bandwidth = 0
        self._seed = seed
        self._rng = random.Random(seed)
        self._in_flight: deque[InFlightMessage] = deque()
        self._drop_rate = 0.0
        self._duplicate_rate = 0.0
        self._reorder_rate = 0.0
        self._bytes_in_window = 0
        self._window_start: Optional[int] = None

    @classmethod
    def with_seed(cls, seed: int) -> Link:
        """Link with the default latency model (1 ms fixed)."""
        return cls(default_latency(), seed)

    @property
    def drop_rate(self) -> float:
        """Probability of dropping each message, within [0, 1]."""
        return self._drop_rate

    @drop_rate.setter
    def drop_rate(self, rate: float) -> None:
        self._drop_rate = _clamp_rate(rate)

    @property
    def duplicate_rate(self) -> float:
        """Probability of duplicating each message, within [0, 1]."""
        return self._duplicate_rate

    @duplicate_rate.setter
    def duplicate_rate(self, rate: float) -> None:
        self._duplicate_rate = _clamp_rate(rate)

    @property
    def reorder_rate(self) -> float:
        """Probability of delaying a message by an extra latency sample, within [0, 1]."""
        return self._reorder_rate

    @reorder_rate.setter
    def reorder_rate(self, rate: float) -> None:
        self._reorder_rate = _clamp_rate(rate)

    def enqueue(self, msg: Message, now: int) -> None:
        """Put ``msg`` on the link at time ``now``.

        The message may be dropped, delayed past the bandwidth window,
        reordered or duplicated according to the link's settings.
        """
        if self._rng.random() < self._drop_rate:
            return

        if self.bandwidth > 0:
            size = msg.size()
            if self._window_start is None:
                self._window_start = now
            elif max(0, now - self._window_start) >= _BANDWIDTH_WINDOW:
                self._window_start = now
                self._bytes_in_window = 0

            if self._bytes_in_window + size > self.bandwidth:
                wait = self.latency.sample(self._rng) + _BANDWIDTH_WINDOW
                self._in_flight.append(InFlightMessage(msg, _saturating_add(now, wait)))
                return

            self._bytes_in_window += size

        wait = self.latency.sample(self._rng)
        if self._rng.random() < self._reorder_rate:
            wait += self.latency.sample(self._rng)
        self._in_flight.append(InFlightMessage(msg, _saturating_add(now, wait)))

        if self._rng.random() < self._duplicate_rate:
            dup_wait = self.latency.sample(self._rng)
            self._in_flight.append(InFlightMessage(msg, _saturating_add(now, dup_wait)))

    def deliver(self, now: int) -> list[Message]:
        """Remove and return every message due at or before ``now``, in queue order."""
        delivered: list[Message] = []
        remaining: deque[InFlightMessage] = deque()
        for item in self._in_flight:
            if item.deliver_at <= now:
                delivered.append(item.msg)
            else:
                remaining.append(item)
        self._in_flight = remaining
        return delivered

    def peek_deliverable(self, now: int) -> list[Message]:
        """Messages due at or before ``now``, left on the link."""
        return [item.msg for item in self._in_flight if item.deliver_at <= now]

    def in_flight_count(self) -> int:
        """Number of messages on the link."""
        return len(self._in_flight)

    def is_empty(self) -> bool:
        """True if no message is on the link."""
        return not self._in_flight

    def next_delivery_time(self) -> Optional[int]:
        """Earliest delivery time of any message on the link, or None."""
        return min((item.deliver_at for item in self._in_flight), default=None)

    def reset(self) -> None:
        """Drop every message, clear the bandwidth window and reseed the generator."""
        self._in_flight.clear()
        self._bytes_in_window = 0
        self._window_start = None
        self._rng = random.Random(self._seed)

    def __repr__(self) -> str:
        return (
            f"Link(latency={self.latency!r}, in_flight={len(self._in_flight)}, "
            f"drop_rate={self._drop_rate}, duplicate_rate={self._duplicate_rate}, "
            f"reorder_rate={self._reorder_rate}, bandwidth={self.bandwidth})"
        )