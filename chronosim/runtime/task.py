"""Tasks driven step by step by the simulation runtime."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Generator, Optional, Union

from chronosim.runtime.waker import Waker

__all__ = ["BlockKind", "BlockReason", "Task", "TaskHandle"]


class BlockKind(Enum):
    """What a blocked task is waiting for."""

    TIME = "time"
    CHANNEL = "channel"
    NETWORK = "network"
    DISK = "disk"
    TASK = "task"
    LOCK = "lock"
    OTHER = "other"


_VALUE_TYPES: dict[BlockKind, Optional[type]] = {
    BlockKind.TIME: int,
    BlockKind.TASK: int,
    BlockKind.OTHER: str,
}


@dataclass(frozen=True)
class BlockReason:
    """Why a task is blocked.

    ``value`` is the wake-up instant for TIME, the awaited task id for TASK,
    a description for OTHER, and None for every other kind.
    """

    kind: BlockKind
    value: Union[int, str, None] = None

    def __post_init__(self) -> None:
        expected = _VALUE_TYPES.get(self.kind)
        if expected is None:
            if self.value is not None:
                raise ValueError(f"{self.kind.name} block reason takes no value")
        elif not isinstance(self.value, expected) or isinstance(self.value, bool):
            raise ValueError(
                f"{self.kind.name} block reason needs a {expected.__name__} value"
            )


class _WakeRequest:
    """Yielded by an awaitable that wants to be polled again."""

    __slots__ = ()


_WAKE_ME = _WakeRequest()


class TaskHandle:
    """Shared view of a task's completion."""

    def __init__(self, task_id: int) -> None:
        self.id = task_id
        self._complete = threading.Event()

    @classmethod
    def completed(cls, task_id: int) -> TaskHandle:
        """A handle whose task has already completed."""
        handle = cls(task_id)
        handle.mark_complete()
        return handle

    def is_complete(self) -> bool:
        """True once the task has completed."""
        return self._complete.is_set()

    def mark_complete(self) -> None:
        """Record that the task has completed."""
        self._complete.set()

    async def join(self) -> None:
        """Wait until the task completes."""
        await _JoinAwaitable(self)

    def __repr__(self) -> str:
        return f"TaskHandle(id={self.id}, complete={self.is_complete()})"


class _JoinAwaitable:
    def __init__(self, handle: TaskHandle) -> None:
        self._handle = handle

    def __await__(self) -> Generator[Any, None, None]:
        while not self._handle.is_complete():
            yield _WAKE_ME


class Task:
    """A spawned awaitable together with its handle and readiness flag."""

    def __init__(self, task_id: int, awaitable: Awaitable[None]) -> None:
        self.id = task_id
        self.handle = TaskHandle(task_id)
        self.ready = True
        self._steps = awaitable.__await__()

    def poll(self, waker: Waker) -> bool:
        """Run the task until it suspends; return True if it completed.

        An awaitable that asks to be polled again wakes ``waker``.
        """
        if self.is_complete():
            raise RuntimeError(f"task {self.id} polled after completion")
        try:
            yielded = self._steps.send(None)
        except StopIteration:
            self.handle.mark_complete()
            return True
        if yielded is _WAKE_ME:
            waker.wake_by_ref()
        return False

    def is_ready(self) -> bool:
        """True if the task may be polled."""
        return self.ready and not self.is_complete()

    def is_complete(self) -> bool:
        """True once the task has completed."""
        return self.handle.is_complete()

    def __repr__(self) -> str:
        return f"Task(id={self.id}, ready={self.ready}, complete={self.is_complete()})"