from .crc32c import CRC32_POLY
from .crc32c import CRC32C_POLY
from .crc32c import Crc32cLengthKnown
from .crc32c import crc32c_combine
from .crc32c import crc_combine
from .crc32c import null_safe_concat
from .hasher import Crc32cHasher
from .hasher import Hasher
from .hasher import NoopHasher
from .hasher import hasher_from_config


__all__ = [
    "CRC32_POLY",
    "CRC32C_POLY",
    "Crc32cLengthKnown",
    "crc32c_combine",
    "crc_combine",
    "null_safe_concat",
    "Hasher",
    "Crc32cHasher",
    "NoopHasher",
    "hasher_from_config",
]
