"""Network messages exchanged between simulated nodes."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass

__all__ = [
    "InFlightMessage",
    "Message",
    "next_message_id",
    "reset_message_ids",
]


class _IdSequence:
    """Thread-safe source of increasing message identifiers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = itertools.count()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)

    def reset(self) -> None:
        with self._lock:
            self._counter = itertools.count()


_ids = _IdSequence()


def next_message_id() -> int:
    """Return a new unique message identifier."""
    return _ids.next()


def reset_message_ids() -> None:
    """Restart message identifiers from zero."""
    _ids.reset()


@dataclass(frozen=True)
class Message:
    """A message from one node to another.

    ``sent_at`` is the simulated time in nanoseconds.
    """

    id: int
    src: int
    dst: int
    data: bytes
    sent_at: int

    @classmethod
    def create(cls, src: int, dst: int, data: bytes, sent_at: int) -> Message:
        """Build a message carrying a freshly allocated identifier."""
        return cls(next_message_id(), src, dst, bytes(data), sent_at)

    def size(self) -> int:
        """Size of the payload in bytes."""
        return len(self.data)

    def is_empty(self) -> bool:
        """True if the payload is empty."""
        return not self.data


@dataclass
class InFlightMessage:
    """A message travelling through a link, due at ``deliver_at`` nanoseconds."""

    msg: Message
    deliver_at: int

    def latency(self) -> int:
        """Nanoseconds between sending and delivery; zero if delivery precedes sending."""
        return max(0, self.deliver_at - self.msg.sent_at)