from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import Union

from storage_dataplane.checksum import Crc32cLengthKnown
from storage_dataplane.checksum import Hasher
from storage_dataplane.checksum import NoopHasher
from storage_dataplane.checksum import hasher_from_config

from .buffers import ByteCursor
from .buffers import BytesLike
from .buffers import as_cursor


logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 256 * 1024

BufferInput = Union[ByteCursor, BytesLike]


@dataclass(frozen=True)
class ChunkSegment:
    """One bounded-size piece of a chunk, sent to the wire as a single message.

    Bytes are held as the slices they were cut from; merging two segments
    joins the slice tuples and combines the checksums, so no byte is copied
    or hashed again.
    """

    parts: Tuple[BytesLike, ...]
    crc32c: Optional[Crc32cLengthKnown]
    block_size: int = DEFAULT_BLOCK_SIZE

    @property
    def size(self) -> int:
        return sum(len(p) for p in self.parts)

    @property
    def data(self) -> bytes:
        if len(self.parts) == 1:
            return bytes(self.parts[0])
        return b"".join(self.parts)

    @property
    def only_full_blocks(self) -> bool:
        return self.size % self.block_size == 0

    def concat(self, other: ChunkSegment) -> ChunkSegment:
        crc = None
        if self.crc32c is not None and other.crc32c is not None:
            crc = self.crc32c.concat(other.crc32c)
        return ChunkSegment(self.parts + other.parts, crc, self.block_size)

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return (
            f"ChunkSegment(size={self.size}, crc32c={self.crc32c}, "
            f"parts={len(self.parts)}, only_full_blocks={self.only_full_blocks})"
        )


class ChunkSegmenter:
    """Splits a logical chunk of buffers into segments of at most ``max_segment_size`` bytes.

    Given a chunk made of two buffers, A (3 MiB) and B (6.6 MiB), and a
    2 MiB maximum::

           A: 3 MiB                  B: 6.6 MiB
        |----------------|-----------------------------------|

        S1: 2 MiB  S2: 2 MiB  S3: 2 MiB  S4: 2 MiB  S5: 1.6 MiB
        |---------|----------|----------|----------|--------|

    S2 spans A and B: it is built from A's last 1 MiB and B's first 1 MiB,
    each hashed once, with the two checksums combined.
    """

    def __init__(
        self,
        hasher: Optional[Hasher],
        max_segment_size: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
        copy: bool = True,
    ):
        if max_segment_size < 1:
            raise ValueError(f"max_segment_size must be >= 1, got {max_segment_size}")
        if block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {block_size}")
        self.hasher: Hasher = hasher if hasher is not None else NoopHasher()
        self.max_segment_size = max_segment_size
        self.block_size = block_size
        self.copy = copy

    @classmethod
    def from_config(cls, config: Any) -> ChunkSegmenter:
        return cls(
            hasher_from_config(config),
            config.max_segment_size,
            block_size=config.block_size,
            copy=config.segment_copy,
        )

    def segment_buffers(
        self, buffers: Sequence[BufferInput], offset: int = 0, length: Optional[int] = None
    ) -> List[ChunkSegment]:
        """Segment ``buffers[offset:offset + length]`` (all buffers by default).

        ``ByteCursor`` inputs are advanced as their bytes are consumed.
        """
        if length is None:
            length = len(buffers) - offset
        if offset < 0 or length < 0 or offset + length > len(buffers):
            raise ValueError(f"invalid buffer range offset={offset} length={length} for {len(buffers)} buffers")

        segments: List[ChunkSegment] = []
        for i in range(offset, offset + length):
            cursor = as_cursor(buffers[i])
            while cursor.has_remaining():
                remaining = cursor.remaining()
                last = segments[-1] if segments else None
                if last is None or last.size == self.max_segment_size:
                    # nothing open, or the open segment is full: start a new one
                    segments.append(self._new_segment(cursor, min(remaining, self.max_segment_size)))
                else:
                    room = self.max_segment_size - last.size
                    segments[-1] = last.concat(self._new_segment(cursor, min(remaining, room)))

        logger.debug(
            f"Segmented {length} buffers into {len(segments)} segments "
            f"(max_segment_size={self.max_segment_size})"
        )
        return segments

    def _new_segment(self, cursor: ByteCursor, limit: int) -> ChunkSegment:
        view = cursor.take(limit)
        part: BytesLike = view.tobytes() if self.copy else view
        return ChunkSegment((part,), self.hasher.hash(part), self.block_size)
