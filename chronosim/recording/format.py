"""Binary format of recording files: the file header and recorded events.

Integers are little-endian and fixed width. Sequences and strings carry a
u64 length prefix. Enumerations are written as their u32 variant index.
"""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Iterable

__all__ = [
    "HEADER_SIZE",
    "MAGIC",
    "VERSION",
    "Event",
    "EventPayload",
    "EventType",
    "FaultInjectedPayload",
    "Header",
    "InvalidRecordingError",
    "NetRecvPayload",
    "NetSendPayload",
    "RandomGenPayload",
    "ScheduleDecisionPayload",
    "TaskCompletePayload",
    "TaskSpawnPayload",
    "TaskYieldPayload",
    "TimeQueryPayload",
]

MAGIC = b"CHRN"
"""Magic bytes at the start of every recording."""

VERSION = 1
"""Current format version."""

HEADER_SIZE = 25
"""Size of an encoded header in bytes."""


class InvalidRecordingError(ValueError):
    """Raised for recording data that cannot be encoded, decoded or accepted."""


class _Encoder:
    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self._parts.append(struct.pack(fmt, value))
        except struct.error as exc:
            raise InvalidRecordingError(f"value out of range: {value!r}") from exc

    def u8(self, value: int) -> None:
        self._pack("<B", value)

    def u32(self, value: int) -> None:
        self._pack("<I", value)

    def u64(self, value: int) -> None:
        self._pack("<Q", value)

    def raw(self, data: bytes) -> None:
        self._parts.append(bytes(data))

    def byte_seq(self, data: bytes) -> None:
        self.u64(len(data))
        self.raw(data)

    def string(self, text: str) -> None:
        self.byte_seq(text.encode("utf-8"))

    def u32_seq(self, values: Iterable[int]) -> None:
        items = list(values)
        self.u64(len(items))
        for value in items:
            self.u32(value)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise InvalidRecordingError("unexpected end of data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: str) -> int:
        (value,) = struct.unpack(fmt, self.take(struct.calcsize(fmt)))
        return value

    def u8(self) -> int:
        return self._unpack("<B")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def byte_seq(self) -> bytes:
        return self.take(self.u64())

    def string(self) -> str:
        try:
            return self.byte_seq().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidRecordingError("invalid utf-8 in string") from exc

    def u32_seq(self) -> tuple[int, ...]:
        count = self.u64()
        if count * 4 > self.remaining():
            raise InvalidRecordingError("unexpected end of data")
        return tuple(self.u32() for _ in range(count))


@dataclass
class Header:
    """Header at the start of a recording file."""

    magic: bytes
    version: int
    seed: int
    strategy: int
    timestamp: int

    @classmethod
    def create(cls, seed: int, strategy: int) -> Header:
        """Header for the current format, stamped with the wall clock in nanoseconds."""
        return cls(MAGIC, VERSION, seed, strategy, time.time_ns())

    def validate(self) -> None:
        """Raise :class:`InvalidRecordingError` if this header cannot be read."""
        if self.magic != MAGIC:
            raise InvalidRecordingError("invalid magic bytes")
        if self.version > VERSION:
            raise InvalidRecordingError("unsupported version")

    def to_bytes(self) -> bytes:
        """Encode the header into its fixed-size form."""
        if len(self.magic) != 4:
            raise InvalidRecordingError("magic must be exactly 4 bytes")
        enc = _Encoder()
        enc.raw(self.magic)
        enc.u32(self.version)
        enc.u64(self.seed)
        enc.u8(self.strategy)
        enc.u64(self.timestamp)
        return enc.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        """Decode a header from the first :data:`HEADER_SIZE` bytes of ``data``."""
        dec = _Decoder(data)
        magic = dec.take(4)
        return cls(magic, dec.u32(), dec.u64(), dec.u8(), dec.u64())


class EventType(IntEnum):
    """Kinds of recorded events."""

    TASK_SPAWN = 0x01
    TASK_YIELD = 0x02
    TASK_COMPLETE = 0x03
    TIME_QUERY = 0x04
    RANDOM_GEN = 0x05
    NET_SEND = 0x06
    NET_RECV = 0x07
    SCHEDULE_DECISION = 0x08
    FAULT_INJECTED = 0x09


_EVENT_TYPES = tuple(EventType)


class EventPayload:
    """Base class of event-specific data."""

    __slots__ = ()

    def _encode(self, enc: _Encoder) -> None:
        """Write the payload fields; payloads without fields write nothing."""

    @classmethod
    def _decode(cls, dec: _Decoder) -> EventPayload:
        return cls()


@dataclass(frozen=True)
class TaskSpawnPayload(EventPayload):
    """A task was spawned by ``parent`` under ``name``."""

    parent: int
    name: str

    def _encode(self, enc: _Encoder) -> None:
        enc.u32(self.parent)
        enc.string(self.name)

    @classmethod
    def _decode(cls, dec: _Decoder) -> TaskSpawnPayload:
        return cls(dec.u32(), dec.string())


@dataclass(frozen=True)
class TaskYieldPayload(EventPayload):
    """A task yielded."""


@dataclass(frozen=True)
class TaskCompletePayload(EventPayload):
    """A task completed."""


@dataclass(frozen=True)
class TimeQueryPayload(EventPayload):
    """The simulated time was read."""

    result: int

    def _encode(self, enc: _Encoder) -> None:
        enc.u64(self.result)

    @classmethod
    def _decode(cls, dec: _Decoder) -> TimeQueryPayload:
        return cls(dec.u64())


@dataclass(frozen=True)
class RandomGenPayload(EventPayload):
    """A random value was generated."""

    result: int

    def _encode(self, enc: _Encoder) -> None:
        enc.u64(self.result)

    @classmethod
    def _decode(cls, dec: _Decoder) -> RandomGenPayload:
        return cls(dec.u64())


@dataclass(frozen=True)
class NetSendPayload(EventPayload):
    """Data was sent to node ``dst``."""

    dst: int
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    def _encode(self, enc: _Encoder) -> None:
        enc.u32(self.dst)
        enc.byte_seq(self.data)

    @classmethod
    def _decode(cls, dec: _Decoder) -> NetSendPayload:
        return cls(dec.u32(), dec.byte_seq())


@dataclass(frozen=True)
class NetRecvPayload(EventPayload):
    """Data was received from node ``src``."""

    src: int
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    def _encode(self, enc: _Encoder) -> None:
        enc.u32(self.src)
        enc.byte_seq(self.data)

    @classmethod
    def _decode(cls, dec: _Decoder) -> NetRecvPayload:
        return cls(dec.u32(), dec.byte_seq())


@dataclass(frozen=True)
class ScheduleDecisionPayload(EventPayload):
    """The scheduler chose ``chosen`` among the ``ready`` tasks."""

    chosen: int
    ready: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "ready", tuple(self.ready))

    def _encode(self, enc: _Encoder) -> None:
        enc.u32(self.chosen)
        enc.u32_seq(self.ready)

    @classmethod
    def _decode(cls, dec: _Decoder) -> ScheduleDecisionPayload:
        return cls(dec.u32(), dec.u32_seq())


@dataclass(frozen=True)
class FaultInjectedPayload(EventPayload):
    """A fault of kind ``fault_type`` hit ``target``."""

    fault_type: int
    target: int

    def _encode(self, enc: _Encoder) -> None:
        enc.u8(self.fault_type)
        enc.u32(self.target)

    @classmethod
    def _decode(cls, dec: _Decoder) -> FaultInjectedPayload:
        return cls(dec.u8(), dec.u32())


_PAYLOAD_TYPES: tuple[type[EventPayload], ...] = (
    TaskSpawnPayload,
    TaskYieldPayload,
    TaskCompletePayload,
    TimeQueryPayload,
    RandomGenPayload,
    NetSendPayload,
    NetRecvPayload,
    ScheduleDecisionPayload,
    FaultInjectedPayload,
)
_PAYLOAD_INDEX = {payload_type: index for index, payload_type in enumerate(_PAYLOAD_TYPES)}


@dataclass(frozen=True)
class Event:
    """One recorded event: its kind, the task behind it, when, and its data."""

    event_type: EventType
    task_id: int
    timestamp: int
    payload: EventPayload

    _NO_FIELDS: ClassVar[tuple[()]] = ()

    @classmethod
    def task_spawn(cls, task_id: int, parent: int, name: str, timestamp: int) -> Event:
        """Task spawn event."""
        return cls(EventType.TASK_SPAWN, task_id, timestamp, TaskSpawnPayload(parent, name))

    @classmethod
    def task_yield(cls, task_id: int, timestamp: int) -> Event:
        """Task yield event."""
        return cls(EventType.TASK_YIELD, task_id, timestamp, TaskYieldPayload())

    @classmethod
    def task_complete(cls, task_id: int, timestamp: int) -> Event:
        """Task completion event."""
        return cls(EventType.TASK_COMPLETE, task_id, timestamp, TaskCompletePayload())

    @classmethod
    def time_query(cls, task_id: int, timestamp: int, result: int) -> Event:
        """Time query event."""
        return cls(EventType.TIME_QUERY, task_id, timestamp, TimeQueryPayload(result))

    @classmethod
    def random_gen(cls, task_id: int, timestamp: int, result: int) -> Event:
        """Random generation event."""
        return cls(EventType.RANDOM_GEN, task_id, timestamp, RandomGenPayload(result))

    @classmethod
    def net_send(cls, task_id: int, timestamp: int, dst: int, data: bytes) -> Event:
        """Network send event."""
        return cls(EventType.NET_SEND, task_id, timestamp, NetSendPayload(dst, data))

    @classmethod
    def net_recv(cls, task_id: int, timestamp: int, src: int, data: bytes) -> Event:
        """Network receive event."""
        return cls(EventType.NET_RECV, task_id, timestamp, NetRecvPayload(src, data))

    @classmethod
    def schedule_decision(
        cls, task_id: int, timestamp: int, chosen: int, ready: Iterable[int]
    ) -> Event:
        """Scheduling decision event."""
        return cls(
            EventType.SCHEDULE_DECISION,
            task_id,
            timestamp,
            ScheduleDecisionPayload(chosen, tuple(ready)),
        )

    @classmethod
    def fault_injected(cls, task_id: int, timestamp: int, fault_type: int, target: int) -> Event:
        """Fault injection event."""
        return cls(
            EventType.FAULT_INJECTED, task_id, timestamp, FaultInjectedPayload(fault_type, target)
        )

    def to_bytes(self) -> bytes:
        """Encode the event."""
        try:
            type_index = _EVENT_TYPES.index(EventType(self.event_type))
        except ValueError as exc:
            raise InvalidRecordingError(f"unknown event type: {self.event_type!r}") from exc
        payload_index = _PAYLOAD_INDEX.get(type(self.payload))
        if payload_index is None:
            raise InvalidRecordingError(f"unknown payload: {self.payload!r}")
        enc = _Encoder()
        enc.u32(type_index)
        enc.u32(self.task_id)
        enc.u64(self.timestamp)
        enc.u32(payload_index)
        self.payload._encode(enc)
        return enc.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> Event:
        """Decode an event from the start of ``data``; trailing bytes are ignored."""
        dec = _Decoder(data)
        type_index = dec.u32()
        if type_index >= len(_EVENT_TYPES):
            raise InvalidRecordingError(f"unknown event type index: {type_index}")
        event_type = _EVENT_TYPES[type_index]
        task_id = dec.u32()
        timestamp = dec.u64()
        payload_index = dec.u32()
        if payload_index >= len(_PAYLOAD_TYPES):
            raise InvalidRecordingError(f"unknown payload index: {payload_index}")
        payload = _PAYLOAD_TYPES[payload_index]._decode(dec)
        return cls(event_type, task_id, timestamp, payload)