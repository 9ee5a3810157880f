from unittest.mock import Mock

import google_crc32c

from storage_dataplane.checksum import Crc32cHasher
from storage_dataplane.checksum import Crc32cLengthKnown
from storage_dataplane.checksum import NoopHasher
from storage_dataplane.checksum import hasher_from_config


def test_crc32c_hasher_accepts_bytes_like():
    data = b"some bytes to hash"
    expected = Crc32cLengthKnown(google_crc32c.value(data), len(data))
    hasher = Crc32cHasher()

    assert hasher.hash(data) == expected
    assert hasher.hash(bytearray(data)) == expected
    assert hasher.hash(memoryview(data)) == expected
    assert hasher.hash(memoryview(b"xx" + data)[2:]) == expected


def test_crc32c_hasher_empty():
    assert Crc32cHasher().hash(b"") == Crc32cLengthKnown(0, 0)


def test_noop_hasher_never_hashes():
    hasher = NoopHasher()

    assert hasher.hash(b"abc") is None
    assert hasher.null_safe_concat(Crc32cLengthKnown(1, 1), Crc32cLengthKnown(2, 1)) is None


def test_hasher_from_config():
    assert isinstance(hasher_from_config(Mock(checksums_enabled=True)), Crc32cHasher)
    assert isinstance(hasher_from_config(Mock(checksums_enabled=False)), NoopHasher)


def test_crc32c_hasher_views_and_writable_buffers():
    data = b"abcdefgh" * 4
    expected = Crc32cHasher().hash(data)
    frozen = memoryview(data)
    writable = bytearray(data)

    assert Crc32cHasher().hash(frozen) == expected
    assert Crc32cHasher().hash(memoryview(writable)) == expected
    # wide item views hash their raw bytes
    assert Crc32cHasher().hash(frozen.cast("I")) == expected

    writable[0] ^= 0xFF
    assert Crc32cHasher().hash(writable) != expected
