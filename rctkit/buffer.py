"""Growable byte buffer and a queue of buffers read as one stream."""

from __future__ import annotations

import os
from collections import deque

_CLEAR_THRESHOLD = 1024 * 512


class Buffer:
    """Bytes with a size and a separately reserved capacity."""

    def __init__(self, data: bytes = b"") -> None:
        self._storage = bytearray(data)
        self._size = len(self._storage)

    def __len__(self) -> int:
        return self._size

    def __bytes__(self) -> bytes:
        return bytes(self._storage[: self._size])

    def __repr__(self) -> str:
        return f"Buffer(size={self._size}, capacity={len(self._storage)})"

    def is_empty(self) -> bool:
        return not self._size

    def capacity(self) -> int:
        return len(self._storage)

    def clear(self) -> None:
        """Empty the buffer; large storage is released, small storage kept."""
        if self._size >= _CLEAR_THRESHOLD:
            self._storage = bytearray()
        self._size = 0

    def _reallocated(self, size: int) -> bytearray:
        storage = bytearray(size)
        keep = min(size, len(self._storage))
        storage[:keep] = self._storage[:keep]
        return storage

    def reserve(self, size: int) -> None:
        """Make room for at least ``size`` bytes without changing the size."""
        if size <= len(self._storage):
            return
        self._storage = self._reallocated(size)

    def resize(self, size: int) -> None:
        """Set the size; growing within capacity keeps the storage."""
        if size < 0:
            raise ValueError("size must not be negative")
        if not size:
            self.clear()
            return
        if self._size <= size <= len(self._storage):
            self._size = size
            return
        self._storage = self._reallocated(size)
        self._size = size

    def data(self) -> memoryview:
        """Writable view of the buffer's contents."""
        return memoryview(self._storage)[: self._size]

    def load(self, filename: str | os.PathLike[str]) -> bool:
        """Replace the contents with a file's; False if the file is empty.

        Raises OSError if the file cannot be read.
        """
        self.clear()
        with open(filename, "rb") as handle:
            content = handle.read()
        if not content:
            return False
        self.resize(len(content))
        self._storage[: len(content)] = content
        return True


class Buffers:
    """Queue of byte chunks read from front to back as one stream."""

    def __init__(self) -> None:
        self._chunks: deque[bytes] = deque()
        self._offset = 0

    def __len__(self) -> int:
        return sum(len(chunk) for chunk in self._chunks) - self._offset

    def push(self, buf: Buffer | bytes | bytearray | memoryview) -> None:
        """Append the contents of ``buf``."""
        self._chunks.append(bytes(buf.data()) if isinstance(buf, Buffer) else bytes(buf))

    def read(self, size: int) -> bytes:
        """Take up to ``size`` bytes from the front."""
        if size <= 0:
            return b""
        out = bytearray()
        remaining = size
        while self._chunks:
            chunk = self._chunks[0]
            available = len(chunk) - self._offset
            if remaining <= available:
                out += chunk[self._offset : self._offset + remaining]
                if remaining == available:
                    self._chunks.popleft()
                    self._offset = 0
                else:
                    self._offset += remaining
                break
            out += chunk[self._offset :]
            remaining -= available
            self._offset = 0
            self._chunks.popleft()
        return bytes(out)