"""
Range-readable byte providers.

Readers never rely on a cursor: every call states an absolute offset and a
length. Sources with a shared handle serialize physical reads with a lock so
readers built over the same source can be used from several threads.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from .config import ReaderConfig
from .errors import ByteSourceIOError, TruncatedData
from .logger import get_logger

log = get_logger(__name__)


class ByteSource(Protocol):
    @property
    def size(self) -> int: ...

    def read(self, offset: int, length: int) -> bytes: ...


def _check_range(offset: int, length: int, size: int) -> None:
    if offset < 0 or length < 0 or offset + length > size:
        raise TruncatedData(
            f"Read of {length} bytes at offset {offset} exceeds source size {size}"
        )


class BytesByteSource:
    """In-memory source over a bytes-like buffer."""

    def __init__(self, data: Union[bytes, bytearray, memoryview]) -> None:
        self._data = memoryview(data).cast("B")

    @property
    def size(self) -> int:
        return len(self._data)

    def read(self, offset: int, length: int) -> bytes:
        _check_range(offset, length, len(self._data))
        return self._data[offset : offset + length].tobytes()


class FileByteSource:
    """
    Local file source with a single read-ahead window.

    Small reads that fall inside the window are served from memory; anything
    else refills the window at the requested offset. Reads larger than the
    window bypass it.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        config: Optional[ReaderConfig] = None,
        buffer_size: Optional[int] = None,
    ) -> None:
        self.path = Path(path)
        if buffer_size is None:
            buffer_size = (config or ReaderConfig()).buffer_size
        self._buffer_size = buffer_size
        self._lock = threading.Lock()
        try:
            self._fh = open(self.path, "rb")
            self._size = os.fstat(self._fh.fileno()).st_size
        except OSError as exc:
            raise ByteSourceIOError(f"Cannot open {self.path}: {exc}") from exc
        self._window = b""
        self._window_start = 0

    def __enter__(self) -> "FileByteSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def size(self) -> int:
        return self._size

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()
            self._window = b""

    def read(self, offset: int, length: int) -> bytes:
        _check_range(offset, length, self._size)
        with self._lock:
            if self._fh.closed:
                raise ByteSourceIOError(f"{self.path} is closed")
            start = offset - self._window_start
            if 0 <= start and start + length <= len(self._window):
                return self._window[start : start + length]
            if length > self._buffer_size:
                return self._read_exact(offset, length)
            self._window = self._read_exact(offset, min(self._buffer_size, self._size - offset))
            self._window_start = offset
            log.debug(f"Refilled {len(self._window)} byte window at {offset} for {self.path.name}")
            return self._window[:length]

    def _read_exact(self, offset: int, length: int) -> bytes:
        try:
            self._fh.seek(offset)
            data = self._fh.read(length)
        except OSError as exc:
            raise ByteSourceIOError(f"Read failed on {self.path}: {exc}") from exc
        if len(data) != length:
            raise TruncatedData(
                f"Expected {length} bytes at offset {offset} in {self.path}, got {len(data)}"
            )
        return data


class UnityPyByteSource:
    """Source over a UnityPy EndianBinaryReader holding a serialized file."""

    def __init__(self, reader: Any) -> None:
        self._reader = reader
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return int(self._reader.Length)

    def read(self, offset: int, length: int) -> bytes:
        _check_range(offset, length, self.size)
        with self._lock:
            self._reader.Position = offset
            data = self._reader.read_bytes(length)
        return bytes(data)
