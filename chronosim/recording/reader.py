"""Reader for recording files, plain or gzip-compressed."""

from __future__ import annotations

import gzip
import os
import struct
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Iterator, Optional, Union

from chronosim.recording.format import HEADER_SIZE, Event, Header, InvalidRecordingError

__all__ = ["RecordingReader"]

_GZIP_MAGIC = b"\x1f\x8b"
_LENGTH_PREFIX = struct.Struct("<I")

PathLike = Union[str, "os.PathLike[str]"]


def _is_gzip_file(path: PathLike) -> bool:
    with open(path, "rb") as file:
        return file.read(2) == _GZIP_MAGIC


class RecordingReader:
    """Reads the header and the length-prefixed events of a recording.

    Compression is detected from a ``.gz`` extension or from the gzip
    magic bytes at the start of the file.
    """

    def __init__(self, stream: BinaryIO, header: Header, compressed: bool) -> None:
        self._stream = stream
        self._header = header
        self._compressed = compressed
        self._closed = False

    @classmethod
    def open(cls, path: PathLike) -> RecordingReader:
        """Open the recording at ``path`` and validate its header.

        Raises :class:`OSError` if the file cannot be opened and
        :class:`InvalidRecordingError` if its header is missing or invalid.
        """
        compressed = Path(path).suffix == ".gz" or _is_gzip_file(path)
        stream: BinaryIO = gzip.open(path, "rb") if compressed else open(path, "rb")
        try:
            header = Header.from_bytes(cls._read_from(stream, HEADER_SIZE))
            header.validate()
        except BaseException:
            stream.close()
            raise
        return cls(stream, header, compressed)

    @staticmethod
    def _read_from(stream: BinaryIO, size: int) -> bytes:
        try:
            return stream.read(size)
        except EOFError as exc:
            raise InvalidRecordingError("truncated compressed stream") from exc

    @property
    def header(self) -> Header:
        """The recording header."""
        return self._header

    @property
    def seed(self) -> int:
        """Seed of the recorded run."""
        return self._header.seed

    @property
    def strategy(self) -> int:
        """Scheduling strategy of the recorded run."""
        return self._header.strategy

    @property
    def is_compressed(self) -> bool:
        """True if the recording is gzip-compressed."""
        return self._compressed

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has been called."""
        return self._closed

    def next_event(self) -> Optional[Event]:
        """Read the next event, or return None at the end of the recording.

        A length prefix cut short counts as the end; an event body cut
        short raises :class:`InvalidRecordingError`.
        """
        if self._closed:
            raise ValueError("recording reader is closed")
        prefix = self._read_from(self._stream, _LENGTH_PREFIX.size)
        if len(prefix) < _LENGTH_PREFIX.size:
            return None
        (length,) = _LENGTH_PREFIX.unpack(prefix)
        body = self._read_from(self._stream, length)
        if len(body) < length:
            raise InvalidRecordingError("truncated event")
        return Event.from_bytes(body)

    def events(self) -> Iterator[Event]:
        """Yield the remaining events in order."""
        while (event := self.next_event()) is not None:
            yield event

    def close(self) -> None:
        """Close the underlying file."""
        if not self._closed:
            self._closed = True
            self._stream.close()

    def __iter__(self) -> Iterator[Event]:
        return self.events()

    def __enter__(self) -> RecordingReader:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RecordingReader(seed={self.seed}, strategy={self.strategy}, "
            f"compressed={self._compressed}, closed={self._closed})"
        )