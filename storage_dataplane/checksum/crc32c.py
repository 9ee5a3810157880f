"""CRC32C values annotated with the number of bytes they cover.

A CRC over ``A || B`` can be derived from ``crc(A)``, ``crc(B)`` and
``len(B)`` alone: shifting ``crc(A)`` past ``len(B)`` zero bytes is a linear
operator over GF(2), and operators for ``2**k`` zero bytes are obtained by
repeated squaring. This is the same construction zlib uses for
``crc32_combine`` and it holds for any reflected 32-bit CRC whose init and
xorout are both all-ones.
"""

from __future__ import annotations

import base64
import functools
import struct
from dataclasses import dataclass
from typing import Optional
from typing import Tuple


# Reflected polynomials
CRC32C_POLY = 0x82F63B78
CRC32_POLY = 0xEDB88320

_MASK = 0xFFFFFFFF
# Operators for 2**0 .. 2**63 zero bytes
_MAX_LENGTH_BITS = 64

Operator = Tuple[int, ...]


def _gf2_times(mat: Operator, vec: int) -> int:
    total = 0
    i = 0
    while vec:
        if vec & 1:
            total ^= mat[i]
        vec >>= 1
        i += 1
    return total


def _gf2_square(mat: Operator) -> Operator:
    return tuple(_gf2_times(mat, mat[n]) for n in range(32))


@functools.cache
def _zero_byte_operators(poly: int) -> Tuple[Operator, ...]:
    # operator for a single zero bit, then squared up to one zero byte
    op: Operator = (poly,) + tuple(1 << n for n in range(31))
    for _ in range(3):
        op = _gf2_square(op)

    ops = [op]
    for _ in range(_MAX_LENGTH_BITS - 1):
        ops.append(_gf2_square(ops[-1]))
    return tuple(ops)


def crc_combine(poly: int, crc1: int, crc2: int, len2: int) -> int:
    """Combine ``crc1`` (over A) and ``crc2`` (over B, ``len2`` bytes) into crc(A || B)."""
    if len2 < 0:
        raise ValueError(f"length must be non-negative, got {len2}")
    if len2 == 0:
        return crc1

    ops = _zero_byte_operators(poly)
    k = 0
    while len2:
        if len2 & 1:
            crc1 = _gf2_times(ops[k], crc1)
        len2 >>= 1
        k += 1
    return (crc1 ^ crc2) & _MASK


def crc32c_combine(crc1: int, crc2: int, len2: int) -> int:
    return crc_combine(CRC32C_POLY, crc1, crc2, len2)


@dataclass(frozen=True)
class Crc32cLengthKnown:
    """A CRC32C value together with the length of the data it was computed over."""

    value: int
    length: int

    def __post_init__(self) -> None:
        if not 0 <= self.value <= _MASK:
            raise ValueError(f"crc32c value out of range: {self.value}")
        if self.length < 0:
            raise ValueError(f"crc32c length must be non-negative, got {self.length}")

    @classmethod
    def zero(cls) -> Crc32cLengthKnown:
        return cls(0, 0)

    def concat(self, other: Crc32cLengthKnown) -> Crc32cLengthKnown:
        """Checksum of this range followed immediately by ``other``'s range."""
        return Crc32cLengthKnown(
            crc32c_combine(self.value, other.value, other.length),
            self.length + other.length,
        )

    def to_bytes(self) -> bytes:
        return struct.pack(">I", self.value)

    def to_hex(self) -> str:
        return f"{self.value:08x}"

    def to_base64(self) -> str:
        """Big-endian, base64 encoded; the form used in object metadata and headers."""
        return base64.b64encode(self.to_bytes()).decode("ascii")

    def __str__(self) -> str:
        return f"crc32c{{0x{self.to_hex()} (length = {self.length})}}"


def null_safe_concat(
    a: Optional[Crc32cLengthKnown], b: Optional[Crc32cLengthKnown]
) -> Optional[Crc32cLengthKnown]:
    if a is None or b is None:
        return None
    return a.concat(b)
