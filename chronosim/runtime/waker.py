"""Wakers that tell a scheduler when a task may run again."""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod

__all__ = ["WakeNotifier", "Waker", "create_waker"]


class WakeNotifier(ABC):
    """Receives notifications that a task is ready to run."""

    @abstractmethod
    def notify_ready(self, task_id: int) -> None:
        """Mark ``task_id`` as ready."""


class Waker:
    """Wakes one task through a notifier it holds weakly.

    If the notifier has been garbage collected, waking does nothing.
    """

    __slots__ = ("task_id", "_notifier")

    def __init__(self, task_id: int, notifier: weakref.ReferenceType[WakeNotifier]) -> None:
        self.task_id = task_id
        self._notifier = notifier

    def wake(self) -> None:
        """Notify that the task is ready."""
        self.wake_by_ref()

    def wake_by_ref(self) -> None:
        """Notify that the task is ready; the waker stays usable."""
        notifier = self._notifier()
        if notifier is not None:
            notifier.notify_ready(self.task_id)

    def clone(self) -> Waker:
        """Return another waker for the same task and notifier."""
        return Waker(self.task_id, self._notifier)

    def __repr__(self) -> str:
        return f"Waker(task_id={self.task_id})"


def create_waker(task_id: int, notifier: WakeNotifier) -> Waker:
    """Create a waker that notifies ``notifier`` about ``task_id``."""
    return Waker(task_id, weakref.ref(notifier))