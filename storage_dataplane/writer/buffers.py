from __future__ import annotations

from typing import Optional
from typing import Union


BytesLike = Union[bytes, bytearray, memoryview]


class ByteCursor:
    """Sequential read cursor over a bytes-like object.

    Consuming advances ``position``; the underlying bytes are never written.
    """

    def __init__(self, data: BytesLike, position: int = 0, limit: Optional[int] = None):
        view = memoryview(data)
        if view.ndim != 1 or view.itemsize != 1:
            view = view.cast("B")
        self._view = view
        self._limit = len(view) if limit is None else limit
        if not 0 <= self._limit <= len(view):
            raise ValueError(f"limit {self._limit} outside buffer of {len(view)} bytes")
        if not 0 <= position <= self._limit:
            raise ValueError(f"position {position} outside [0, {self._limit}]")
        self._position = position

    @property
    def position(self) -> int:
        return self._position

    @property
    def limit(self) -> int:
        return self._limit

    def remaining(self) -> int:
        return self._limit - self._position

    def has_remaining(self) -> bool:
        return self._position < self._limit

    def take(self, n: int) -> memoryview:
        """Return a zero-copy view of the next ``n`` bytes and advance past them."""
        if n < 0 or n > self.remaining():
            raise ValueError(f"cannot take {n} bytes, {self.remaining()} remaining")
        start = self._position
        self._position += n
        return self._view[start : start + n]

    def __repr__(self) -> str:
        return f"ByteCursor(position={self._position}, limit={self._limit}, capacity={len(self._view)})"


def as_cursor(buf: Union[ByteCursor, BytesLike]) -> ByteCursor:
    if isinstance(buf, ByteCursor):
        return buf
    return ByteCursor(buf)
