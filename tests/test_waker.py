import gc

import pytest

from chronosim.runtime.waker import WakeNotifier, create_waker


class RecordingNotifier(WakeNotifier):
    def __init__(self, log=None):
        self.calls = [] if log is None else log

    @property
    def was_called(self):
        return bool(self.calls)

    @property
    def last_id(self):
        return self.calls[-1]

    def reset(self):
        self.calls.clear()

    def notify_ready(self, task_id):
        self.calls.append(task_id)


def test_waker_creation():
    notifier = RecordingNotifier()
    waker = create_waker(42, notifier)
    assert waker.task_id == 42
    assert not notifier.was_called


def test_waker_wake():
    notifier = RecordingNotifier()
    waker = create_waker(42, notifier)
    assert not notifier.was_called
    waker.wake()
    assert notifier.was_called
    assert notifier.last_id == 42


def test_waker_wake_by_ref():
    notifier = RecordingNotifier()
    waker = create_waker(42, notifier)
    waker.wake_by_ref()
    assert notifier.last_id == 42

    notifier.reset()
    waker.wake_by_ref()
    assert notifier.calls == [42]


def test_waker_clone():
    notifier = RecordingNotifier()
    waker1 = create_waker(42, notifier)
    waker2 = waker1.clone()

    waker1.wake_by_ref()
    assert notifier.calls == [42]

    notifier.reset()
    waker2.wake()
    assert notifier.calls == [42]
    assert waker2.task_id == waker1.task_id


def test_waker_with_dead_notifier():
    log = []
    notifier = RecordingNotifier(log)
    waker = create_waker(42, notifier)
    del notifier
    gc.collect()
    waker.wake()
    assert log == []
    assert waker.task_id == 42

    live_log = []
    live = RecordingNotifier(live_log)
    create_waker(42, live).wake()
    assert live_log == [42]


def test_clones_outlive_original():
    notifier = RecordingNotifier()
    waker = create_waker(7, notifier)
    clone = waker.clone()
    del waker
    gc.collect()
    clone.wake()
    assert notifier.calls == [7]


def test_multiple_tasks():
    notifier = RecordingNotifier()
    waker1 = create_waker(1, notifier)
    waker2 = create_waker(2, notifier)
    waker3 = create_waker(3, notifier)

    waker1.wake_by_ref()
    assert notifier.last_id == 1
    waker2.wake_by_ref()
    assert notifier.last_id == 2
    waker3.wake_by_ref()
    assert notifier.last_id == 3


def test_notifier_is_abstract():
    with pytest.raises(TypeError):
        WakeNotifier()