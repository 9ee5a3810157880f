from __future__ import annotations

import logging
from typing import Any
from typing import Optional
from typing import Protocol
from typing import Union

import google_crc32c

from .crc32c import Crc32cLengthKnown
from .crc32c import null_safe_concat


logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class Hasher(Protocol):
    def hash(self, data: BytesLike) -> Optional[Crc32cLengthKnown]: ...

    def null_safe_concat(
        self, a: Optional[Crc32cLengthKnown], b: Optional[Crc32cLengthKnown]
    ) -> Optional[Crc32cLengthKnown]: ...


class Crc32cHasher:
    """Computes CRC32C (Castagnoli) over byte ranges."""

    def hash(self, data: BytesLike) -> Optional[Crc32cLengthKnown]:
        view = memoryview(data)
        if view.ndim != 1 or view.itemsize != 1:
            view = view.cast("B")
        # the C extension only accepts read-only buffers
        if not view.readonly:
            view = memoryview(view.tobytes())
        return Crc32cLengthKnown(google_crc32c.value(view), view.nbytes)

    def null_safe_concat(
        self, a: Optional[Crc32cLengthKnown], b: Optional[Crc32cLengthKnown]
    ) -> Optional[Crc32cLengthKnown]:
        return null_safe_concat(a, b)

    def __repr__(self) -> str:
        return "Crc32cHasher()"


class NoopHasher:
    """Hasher used when checksums are disabled; never produces a value."""

    def hash(self, data: BytesLike) -> Optional[Crc32cLengthKnown]:
        return None

    def null_safe_concat(
        self, a: Optional[Crc32cLengthKnown], b: Optional[Crc32cLengthKnown]
    ) -> Optional[Crc32cLengthKnown]:
        return None

    def __repr__(self) -> str:
        return "NoopHasher()"


def hasher_from_config(config: Any) -> Hasher:
    if getattr(config, "checksums_enabled", True):
        return Crc32cHasher()
    logger.info("CRC32C checksums disabled; segments will carry no checksum")
    return NoopHasher()
