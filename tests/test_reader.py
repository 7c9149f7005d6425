import pytest

from chronosim.recording.format import (
    MAGIC,
    VERSION,
    Event,
    Header,
    InvalidRecordingError,
    NetSendPayload,
)
from chronosim.recording.reader import RecordingReader
from chronosim.recording.writer import RecordingWriter


def _write(path, events, header=None, compress=False):
    header = header if header is not None else Header.create(12345, 1)
    with RecordingWriter(path, header, compress=compress) as writer:
        for event in events:
            writer.write_event(event)
    return header


def _all_event_kinds():
    return [
        Event.task_spawn(1, 0, "test", 0),
        Event.task_yield(1, 100),
        Event.task_complete(1, 200),
        Event.time_query(1, 300, 999),
        Event.random_gen(1, 400, 42),
        Event.net_send(1, 500, 2, bytes([1, 2, 3])),
        Event.net_recv(1, 600, 2, bytes([4, 5, 6])),
        Event.schedule_decision(0, 700, 1, [1, 2, 3]),
        Event.fault_injected(0, 800, 1, 5),
    ]


def test_open_valid_recording(tmp_path):
    path = tmp_path / "test.chrn"
    header = _write(path, [])
    with RecordingReader.open(path) as reader:
        assert reader.seed == header.seed
        assert reader.strategy == header.strategy
        assert reader.is_compressed is False


def test_open_compressed_recording(tmp_path):
    path = tmp_path / "test.chrn.gz"
    header = _write(path, [Event.task_spawn(1, 0, "main", 0)], compress=True)
    with RecordingReader.open(path) as reader:
        assert reader.seed == header.seed
        assert reader.is_compressed is True


def test_compression_detected_from_content(tmp_path):
    path = tmp_path / "noext.chrn"
    events = [Event.task_yield(3, 30)]
    _write(path, events, compress=True)
    with RecordingReader.open(path) as reader:
        assert reader.is_compressed is True
        assert list(reader) == events


def test_read_single_event(tmp_path):
    path = tmp_path / "test.chrn"
    event = Event.task_spawn(1, 0, "main", 0)
    _write(path, [event])
    with RecordingReader.open(path) as reader:
        assert reader.next_event() == event
        assert reader.next_event() is None


def test_read_multiple_events(tmp_path):
    path = tmp_path / "test.chrn"
    events = [Event.task_yield(i, i * 100) for i in range(10)]
    _write(path, events)
    with RecordingReader.open(path) as reader:
        for expected in events:
            assert reader.next_event() == expected
        assert reader.next_event() is None


def test_read_compressed_events(tmp_path):
    path = tmp_path / "test.chrn.gz"
    events = [Event.task_yield(i, i * 100) for i in range(10)]
    _write(path, events, compress=True)
    with RecordingReader.open(path) as reader:
        assert reader.is_compressed is True
        for expected in events:
            assert reader.next_event() == expected
        assert reader.next_event() is None


def test_events_iterator(tmp_path):
    path = tmp_path / "test.chrn"
    events = [Event.task_complete(i, i * 100) for i in range(5)]
    _write(path, events)
    with RecordingReader.open(path) as reader:
        assert list(reader.events()) == events


def test_open_nonexistent_file(tmp_path):
    with pytest.raises(OSError):
        RecordingReader.open(tmp_path / "missing" / "path.chrn")


def test_roundtrip_all_event_types(tmp_path):
    path = tmp_path / "test.chrn"
    events = _all_event_kinds()
    _write(path, events)
    with RecordingReader.open(path) as reader:
        assert list(reader) == events


def test_compressed_roundtrip_all_event_types(tmp_path):
    path = tmp_path / "test.chrn.gz"
    events = _all_event_kinds()
    _write(path, events, compress=True)
    with RecordingReader.open(path) as reader:
        assert reader.is_compressed is True
        assert list(reader) == events


def test_recording_roundtrip(tmp_path):
    path = tmp_path / "test.chrn"
    events = [
        Event.task_spawn(1, 0, "main", 0),
        Event.task_yield(1, 100),
        Event.random_gen(1, 200, 42),
        Event.task_complete(1, 300),
    ]
    _write(path, events, header=Header.create(12345, 1))
    with RecordingReader.open(path) as reader:
        assert reader.seed == 12345
        assert reader.strategy == 1
        assert list(reader) == events


def test_recording_compressed(tmp_path):
    path = tmp_path / "test.chrn.gz"
    events = [
        Event.task_spawn(1, 0, "test", 0),
        Event.net_send(1, 100, 2, bytes([1, 2, 3, 4, 5])),
        Event.task_complete(1, 200),
    ]
    _write(path, events, header=Header.create(42, 2), compress=True)
    with RecordingReader.open(path) as reader:
        assert reader.is_compressed is True
        assert reader.seed == 42
        read = list(reader)
    assert read == events
    assert read[1].payload == NetSendPayload(2, bytes([1, 2, 3, 4, 5]))


def test_recording_many_events(tmp_path):
    path = tmp_path / "test.chrn"
    events = [Event.task_yield(i % 10, i * 100) for i in range(1000)]
    _write(path, events, header=Header.create(99, 0))
    with RecordingReader.open(path) as reader:
        read = list(reader)
    assert len(read) == 1000
    assert read == events


def test_recording_empty(tmp_path):
    path = tmp_path / "test.chrn"
    _write(path, [], header=Header.create(1, 0))
    with RecordingReader.open(path) as reader:
        assert reader.next_event() is None


def test_recording_header_access(tmp_path):
    path = tmp_path / "test.chrn"
    _write(path, [], header=Header.create(999, 3))
    with RecordingReader.open(path) as reader:
        header = reader.header
        assert header.seed == 999
        assert header.strategy == 3
        assert header.magic == MAGIC
        assert header.version == VERSION


def test_recording_step_through(tmp_path):
    path = tmp_path / "test.chrn"
    events = [
        Event.task_spawn(1, 0, "a", 0),
        Event.task_spawn(2, 0, "b", 100),
        Event.task_spawn(3, 0, "c", 200),
    ]
    _write(path, events, header=Header.create(42, 1))
    with RecordingReader.open(path) as reader:
        assert reader.next_event().task_id == 1
        assert reader.next_event().task_id == 2
        assert reader.next_event().task_id == 3
        assert reader.next_event() is None


def test_bad_magic_rejected(tmp_path):
    path = tmp_path / "bad.chrn"
    path.write_bytes(Header(b"XXXX", VERSION, 1, 0, 0).to_bytes())
    with pytest.raises(InvalidRecordingError, match="invalid magic bytes"):
        RecordingReader.open(path)


def test_newer_version_rejected(tmp_path):
    path = tmp_path / "future.chrn"
    path.write_bytes(Header(MAGIC, VERSION + 1, 1, 0, 0).to_bytes())
    with pytest.raises(InvalidRecordingError, match="unsupported version"):
        RecordingReader.open(path)


def test_empty_file_rejected(tmp_path):
    path = tmp_path / "empty.chrn"
    path.write_bytes(b"")
    with pytest.raises(InvalidRecordingError):
        RecordingReader.open(path)


def test_truncated_event_raises(tmp_path):
    path = tmp_path / "trunc.chrn"
    _write(path, [Event.task_spawn(1, 0, "main", 0)])
    path.write_bytes(path.read_bytes()[:-1])
    with RecordingReader.open(path) as reader:
        with pytest.raises(InvalidRecordingError):
            reader.next_event()


def test_partial_length_prefix_ends_recording(tmp_path):
    path = tmp_path / "partial.chrn"
    event = Event.task_yield(7, 70)
    _write(path, [event])
    path.write_bytes(path.read_bytes() + b"\x01\x00")
    with RecordingReader.open(path) as reader:
        assert list(reader) == [event]


def test_close_stops_reading(tmp_path):
    path = tmp_path / "test.chrn"
    _write(path, [Event.task_yield(1, 1)])
    reader = RecordingReader.open(path)
    reader.close()
    assert reader.closed is True
    with pytest.raises(ValueError):
        reader.next_event()


def test_context_manager_closes(tmp_path):
    path = tmp_path / "test.chrn"
    _write(path, [])
    with RecordingReader.open(path) as reader:
        assert reader.closed is False
    assert reader.closed is True