"""A fixed-capacity byte buffer with a read cursor and a write cursor."""

from __future__ import annotations

import mmap
import os
import socket
import zlib
from typing import Optional, Union

INFLATE_CHUNK = 1 << 18  # 256 KB of compressed input per inflate call


class BufferFullError(Exception):
    """Raised when data does not fit into the room left in a buffer."""


def checksum_range(data: Union[bytes, bytearray, memoryview]) -> int:
    """Return the sum of ``data`` modulo 256."""
    return sum(data) & 0xFF


class Buffer:
    """Bytes between ``start`` (next to read) and ``end`` (next to write).

    The storage never grows: ``capacity`` bytes are available in total.
    """

    def __init__(self, capacity: int = 0, storage=None):
        if storage is None:
            storage = bytearray(capacity)
            self.end = 0
        else:
            self.end = len(storage)
        self._mem = storage
        self.capacity = len(storage)
        self.start = 0

    def __len__(self) -> int:
        return self.size()

    def __enter__(self) -> "Buffer":
        return self

    def __exit__(self, *exc_info) -> None:
        close = getattr(self._mem, "close", None)
        if close is not None:
            close()

    def size(self) -> int:
        """Number of unread bytes."""
        return self.end - self.start

    def remaining(self) -> int:
        """Room left for writing."""
        return self.capacity - self.end

    def data(self) -> bytes:
        """The unread bytes."""
        return bytes(self._mem[self.start:self.end])

    def advance(self, count: int) -> None:
        """Move the read cursor by ``count`` bytes; negative values rewind."""
        position = self.start + count
        if not 0 <= position <= self.end:
            raise ValueError(f"cannot move read position to {position}")
        self.start = position

    def _store(self, data) -> None:
        length = len(data)
        self._mem[self.end:self.end + length] = data
        self.end += length

    def put(self, byte: int) -> None:
        """Append one byte."""
        if self.end >= self.capacity:
            raise BufferFullError("buffer is full")
        self._mem[self.end] = byte & 0xFF
        self.end += 1

    def extend(self, data) -> None:
        """Append ``data`` whole."""
        if len(data) > self.remaining():
            raise BufferFullError(
                f"{len(data)} bytes do not fit into {self.remaining()} bytes"
            )
        self._store(data)

    def get_8(self) -> int:
        """Read and consume one byte."""
        if self.start >= self.end:
            raise IndexError("buffer is empty")
        value = self._mem[self.start]
        self.start += 1
        return value

    def peek_8(self) -> int:
        """Return the next byte without consuming it."""
        if self.start >= self.end:
            raise IndexError("buffer is empty")
        return self._mem[self.start]

    def get(self, count: int) -> bytes:
        """Read and consume ``count`` bytes."""
        if count > self.size():
            raise IndexError(f"only {self.size()} of {count} bytes available")
        value = bytes(self._mem[self.start:self.start + count])
        self.start += count
        return value

    def find(self, byte: int) -> Optional[int]:
        """Offset of ``byte`` from the read position, or None."""
        index = self._mem.find(bytes([byte]), self.start, self.end)
        return None if index < 0 else index - self.start

    def reset(self) -> None:
        """Discard all contents."""
        self.start = 0
        self.end = 0

    def compact(self) -> None:
        """Move the unread bytes to the front of the storage."""
        count = self.size()
        self._mem[0:count] = self._mem[self.start:self.end]
        self.start = 0
        self.end = count

    def checksum(self) -> int:
        """Sum of the unread bytes modulo 256."""
        return checksum_range(self._mem[self.start:self.end])

    def append(self, other: "Buffer") -> int:
        """Copy ``other``'s unread bytes over this buffer's read position.

        Both cursors move past the copied bytes; the copy is cut to the room
        left. Returns the number of bytes copied.
        """
        length = min(other.size(), self.remaining())
        self._mem[self.start:self.start + length] = other._mem[
            other.start:other.start + length
        ]
        self.start += length
        self.end += length
        return length

    def format(self, fmt: str, *args) -> None:
        """Append ``fmt % args``; one byte of room must be left over."""
        text = (fmt % args).encode("latin-1")
        if len(text) >= self.remaining():
            raise BufferFullError("formatted text does not fit")
        self._store(text)

    def recv(self, sock: socket.socket, size: Optional[int] = None) -> int:
        """Receive at most ``size`` bytes from a socket; returns the count."""
        count = self.remaining() if size is None else min(self.remaining(), size)
        data = sock.recv(count)
        self._store(data)
        return len(data)

    def read(self, fd: int, size: Optional[int] = None) -> int:
        """Read at most ``size`` bytes from a file descriptor."""
        count = self.remaining() if size is None else min(self.remaining(), size)
        data = os.read(fd, count)
        self._store(data)
        return len(data)

    def write(self, fd: int) -> int:
        """Write the unread bytes to a file descriptor without consuming them."""
        return os.write(fd, self.data())

    def inflate(self, source: "Buffer", decompressor) -> int:
        """Decompress bytes from ``source`` into this buffer.

        At most 256 KB of input are taken per call; consumed input is removed
        from ``source``. Returns the number of bytes produced.
        """
        nr = min(source.size(), INFLATE_CHUNK)
        room = self.remaining()
        if not nr or not room:
            return 0
        chunk = bytes(source._mem[source.start:source.start + nr])
        unused_before = len(decompressor.unused_data)
        out = decompressor.decompress(chunk, room)
        unused = len(decompressor.unused_data) - unused_before
        source.advance(nr - len(decompressor.unconsumed_tail) - unused)
        self._store(out)
        return len(out)


def mmap_buffer(fd: int, length: int) -> Buffer:
    """Map ``length`` bytes of a file read-only into a full buffer."""
    return Buffer(storage=mmap.mmap(fd, length, access=mmap.ACCESS_READ))


__all__ = ["Buffer", "BufferFullError", "checksum_range", "mmap_buffer", "zlib"]