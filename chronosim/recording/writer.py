"""Writer that records execution events to a file, optionally gzip-compressed."""

from __future__ import annotations

import gzip
import os
import struct
from types import TracebackType
from typing import BinaryIO, Optional, Union

from chronosim.recording.format import Event, Header, InvalidRecordingError

__all__ = ["RecordingWriter"]

_MAX_FRAME = 0xFFFFFFFF

PathLike = Union[str, "os.PathLike[str]"]


class RecordingWriter:
    """Writes a header followed by length-prefixed events.

    Each event is framed by its encoded length as a little-endian u32.
    """

    def __init__(self, path: PathLike, header: Header, compress: bool = False) -> None:
        header_bytes = header.to_bytes()
        self._file: BinaryIO = open(path, "wb")
        self._gzip: Optional[gzip.GzipFile] = None
        if compress:
            self._gzip = gzip.GzipFile(fileobj=self._file, mode="wb")
        self._event_count = 0
        self._finished = False
        try:
            self._stream.write(header_bytes)
        except BaseException:
            self._close()
            raise

    @classmethod
    def compressed(cls, path: PathLike, header: Header) -> RecordingWriter:
        """Writer producing a gzip-compressed recording."""
        return cls(path, header, compress=True)

    @property
    def _stream(self) -> BinaryIO:
        return self._gzip if self._gzip is not None else self._file

    @property
    def event_count(self) -> int:
        """Number of events written so far."""
        return self._event_count

    @property
    def is_compressed(self) -> bool:
        """True if the output is gzip-compressed."""
        return self._gzip is not None

    @property
    def finished(self) -> bool:
        """True once :meth:`finish` has been called."""
        return self._finished

    def write_event(self, event: Event) -> None:
        """Append ``event`` to the recording."""
        if self._finished:
            raise ValueError("recording already finished")
        data = event.to_bytes()
        if len(data) > _MAX_FRAME:
            raise InvalidRecordingError("event too large to record")
        self._stream.write(struct.pack("<I", len(data)))
        self._stream.write(data)
        self._event_count += 1

    def finish(self) -> int:
        """Flush and close the file; return the number of events written."""
        if not self._finished:
            self._close()
        return self._event_count

    def _close(self) -> None:
        self._finished = True
        try:
            if self._gzip is not None:
                self._gzip.close()
        finally:
            self._file.close()

    def __enter__(self) -> RecordingWriter:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.finish()

    def __repr__(self) -> str:
        return (
            f"RecordingWriter(events={self._event_count}, "
            f"compressed={self.is_compressed}, finished={self._finished})"
        )