import pytest

from chronosim.runtime.task import BlockKind, BlockReason, Task, TaskHandle
from chronosim.runtime.waker import WakeNotifier, create_waker


class RecordingNotifier(WakeNotifier):
    def __init__(self):
        self.woken = []

    def notify_ready(self, task_id):
        self.woken.append(task_id)


class _Suspend:
    def __await__(self):
        yield None


async def nothing():
    return None


async def suspend_once(log):
    log.append("start")
    await _Suspend()
    log.append("end")


def test_task_handle_new():
    handle = TaskHandle(42)
    assert handle.id == 42
    assert not handle.is_complete()


def test_task_handle_completed():
    handle = TaskHandle.completed(42)
    assert handle.is_complete()
    assert handle.id == 42


def test_task_handle_mark_complete():
    handle = TaskHandle(1)
    assert not handle.is_complete()
    handle.mark_complete()
    assert handle.is_complete()


def test_task_handle_shared_with_task():
    task = Task(1, nothing())
    handle = task.handle
    notifier = RecordingNotifier()
    assert task.poll(create_waker(1, notifier)) is True
    assert handle.is_complete()


def test_task_new():
    task = Task(1, nothing())
    assert task.id == 1
    assert task.is_ready()
    assert not task.is_complete()
    assert not task.handle.is_complete()
    task.poll(create_waker(1, RecordingNotifier()))


def test_task_poll_completes():
    notifier = RecordingNotifier()
    task = Task(1, nothing())
    assert task.poll(create_waker(1, notifier)) is True
    assert task.is_complete()
    assert not task.is_ready()
    assert notifier.woken == []


def test_task_poll_suspends_then_completes():
    log = []
    notifier = RecordingNotifier()
    waker = create_waker(3, notifier)
    task = Task(3, suspend_once(log))

    assert task.poll(waker) is False
    assert log == ["start"]
    assert not task.is_complete()

    assert task.poll(waker) is True
    assert log == ["start", "end"]
    assert task.is_complete()


def test_poll_after_completion_raises():
    notifier = RecordingNotifier()
    task = Task(1, nothing())
    task.poll(create_waker(1, notifier))
    with pytest.raises(RuntimeError):
        task.poll(create_waker(1, notifier))


def test_task_set_ready():
    task = Task(1, _Suspend())
    assert task.is_ready()
    task.ready = False
    assert not task.is_ready()
    task.ready = True
    assert task.is_ready()


def test_task_handle_join_completed():
    handle = TaskHandle.completed(1)
    notifier = RecordingNotifier()
    joiner = Task(2, handle.join())
    assert joiner.poll(create_waker(2, notifier)) is True
    assert notifier.woken == []


def test_task_handle_join_waits_and_wakes():
    handle = TaskHandle(1)
    notifier = RecordingNotifier()
    waker = create_waker(2, notifier)
    joiner = Task(2, handle.join())

    assert joiner.poll(waker) is False
    assert notifier.woken == [2]

    handle.mark_complete()
    assert joiner.poll(waker) is True
    assert joiner.is_complete()


def test_block_reason_values():
    assert BlockReason(BlockKind.TIME, 500).value == 500
    assert BlockReason(BlockKind.TASK, 3).value == 3
    assert BlockReason(BlockKind.OTHER, "waiting").value == "waiting"
    assert BlockReason(BlockKind.LOCK).value is None


@pytest.mark.parametrize(
    "kind, value",
    [
        (BlockKind.TIME, None),
        (BlockKind.TASK, "x"),
        (BlockKind.OTHER, 5),
        (BlockKind.CHANNEL, 1),
        (BlockKind.DISK, "disk"),
    ],
)
def test_block_reason_rejects_wrong_value(kind, value):
    with pytest.raises(ValueError):
        BlockReason(kind, value)