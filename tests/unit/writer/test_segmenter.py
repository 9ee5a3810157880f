import os
from typing import List
from unittest.mock import Mock

import google_crc32c
import pytest

from storage_dataplane.checksum import Crc32cHasher
from storage_dataplane.checksum import Crc32cLengthKnown
from storage_dataplane.checksum import NoopHasher
from storage_dataplane.writer.buffers import ByteCursor
from storage_dataplane.writer.segmenter import ChunkSegment
from storage_dataplane.writer.segmenter import ChunkSegmenter


KIB = 1024


def _direct_crc(data: bytes) -> Crc32cLengthKnown:
    return Crc32cLengthKnown(google_crc32c.value(data), len(data))


def _assert_well_formed(segments: List[ChunkSegment], original: bytes, max_size: int) -> None:
    assert b"".join(s.data for s in segments) == original
    for s in segments[:-1]:
        assert s.size == max_size
    if segments:
        assert 0 < segments[-1].size <= max_size


def test_example_from_docstring():
    # A: 3 units, B: 6.6 units, max 2 units -> 2, 2, 2, 2, 1.6
    a = os.urandom(3000)
    b = os.urandom(6600)
    segmenter = ChunkSegmenter(Crc32cHasher(), 2000, block_size=1000)

    segments = segmenter.segment_buffers([a, b])

    assert [s.size for s in segments] == [2000, 2000, 2000, 2000, 1600]
    assert [s.only_full_blocks for s in segments] == [True, True, True, True, False]
    _assert_well_formed(segments, a + b, 2000)
    # S2 spans both buffers
    assert len(segments[1].parts) == 2


def test_empty_chunk_yields_no_segments():
    segmenter = ChunkSegmenter(Crc32cHasher(), 16)

    assert segmenter.segment_buffers([]) == []
    assert segmenter.segment_buffers([b"", bytearray()]) == []


def test_small_chunk_yields_one_segment():
    segments = ChunkSegmenter(Crc32cHasher(), 64 * KIB).segment_buffers([b"abc", b"def"])

    assert len(segments) == 1
    assert segments[0].data == b"abcdef"
    assert segments[0].crc32c == _direct_crc(b"abcdef")


def test_exact_multiple_yields_equal_segments():
    data = os.urandom(4 * 512)

    segments = ChunkSegmenter(Crc32cHasher(), 512).segment_buffers([data[:100], data[100:]])

    assert [s.size for s in segments] == [512] * 4


@pytest.mark.parametrize("max_size", [1, 3, 7, 64, 1000, 5000])
@pytest.mark.parametrize("sizes", [[1], [10, 0, 5], [999, 1, 2000], [7] * 13, [4096, 4096]])
def test_round_trip_and_checksums(max_size: int, sizes: List[int]):
    buffers = [os.urandom(n) for n in sizes]
    original = b"".join(buffers)

    segments = ChunkSegmenter(Crc32cHasher(), max_size).segment_buffers(buffers)

    _assert_well_formed(segments, original, max_size)
    for s in segments:
        assert s.crc32c == _direct_crc(s.data)


def test_segmenting_is_idempotent():
    buffers = [os.urandom(n) for n in (300, 1, 900, 57)]
    segmenter = ChunkSegmenter(Crc32cHasher(), 256)

    first = segmenter.segment_buffers(buffers)
    second = segmenter.segment_buffers(buffers)

    assert [(s.data, s.crc32c) for s in first] == [(s.data, s.crc32c) for s in second]


def test_without_hasher_sizes_unchanged():
    buffers = [os.urandom(n) for n in (300, 900)]

    plain = ChunkSegmenter(None, 256).segment_buffers(buffers)
    noop = ChunkSegmenter(NoopHasher(), 256).segment_buffers(buffers)
    hashed = ChunkSegmenter(Crc32cHasher(), 256).segment_buffers(buffers)

    assert [s.size for s in plain] == [s.size for s in noop] == [s.size for s in hashed]
    assert all(s.crc32c is None for s in plain + noop)


def test_sub_range_of_buffers():
    buffers = [b"aa", b"bb", b"cc", b"dd"]

    segments = ChunkSegmenter(Crc32cHasher(), 3).segment_buffers(buffers, 1, 2)

    assert [s.data for s in segments] == [b"bbc", b"c"]


@pytest.mark.parametrize("offset,length", [(-1, 1), (0, 5), (3, 2), (1, -1)])
def test_invalid_sub_range(offset: int, length: int):
    with pytest.raises(ValueError):
        ChunkSegmenter(None, 3).segment_buffers([b"a", b"b", b"c", b"d"], offset, length)


def test_cursors_are_consumed():
    first = ByteCursor(b"hello")
    second = ByteCursor(b"world!", position=1)

    segments = ChunkSegmenter(Crc32cHasher(), 4).segment_buffers([first, second])

    assert b"".join(s.data for s in segments) == b"helloorld!"
    assert first.remaining() == 0
    assert second.remaining() == 0


def test_copy_mode_detaches_from_caller_buffer():
    data = bytearray(b"abcdef")

    copied = ChunkSegmenter(None, 4, copy=True).segment_buffers([data])
    shared = ChunkSegmenter(None, 4, copy=False).segment_buffers([data])
    data[0] = ord("z")

    assert copied[0].data == b"abcd"
    assert shared[0].data == b"zbcd"
    assert data == bytearray(b"zbcdef")


def test_concat_is_pure():
    hasher = Crc32cHasher()
    left = ChunkSegment((b"ab",), hasher.hash(b"ab"), 4)
    right = ChunkSegment((b"cd",), hasher.hash(b"cd"), 4)

    merged = left.concat(right)

    assert merged.data == b"abcd"
    assert merged.crc32c == _direct_crc(b"abcd")
    assert merged.only_full_blocks
    assert left.data == b"ab" and not left.only_full_blocks


def test_concat_drops_checksum_if_either_side_lacks_one():
    left = ChunkSegment((b"ab",), Crc32cHasher().hash(b"ab"))

    assert left.concat(ChunkSegment((b"cd",), None)).crc32c is None


@pytest.mark.parametrize("max_size,block_size", [(0, 1), (-5, 1), (1, 0)])
def test_invalid_configuration(max_size: int, block_size: int):
    with pytest.raises(ValueError):
        ChunkSegmenter(None, max_size, block_size=block_size)


def test_each_byte_hashed_once():
    calls = []

    class CountingHasher(Crc32cHasher):
        def hash(self, data):
            calls.append(len(data))
            return super().hash(data)

    buffers = [os.urandom(n) for n in (10, 25, 3)]
    ChunkSegmenter(CountingHasher(), 8).segment_buffers(buffers)

    assert sum(calls) == 38


def test_from_config():
    config = Mock(max_segment_size=4, block_size=2, checksums_enabled=False, segment_copy=False)

    segmenter = ChunkSegmenter.from_config(config)

    assert isinstance(segmenter.hasher, NoopHasher)
    assert [s.size for s in segmenter.segment_buffers([b"abcdefghij"])] == [4, 4, 2]
    assert segmenter.copy is False
