from __future__ import annotations

import base64
import binascii
import dataclasses
import enum
import hashlib
import json
import types
from dataclasses import dataclass
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Protocol


class ReadOption(str, enum.Enum):
    IF_GENERATION_MATCH = "ifGenerationMatch"
    IF_GENERATION_NOT_MATCH = "ifGenerationNotMatch"
    IF_METAGENERATION_MATCH = "ifMetagenerationMatch"
    IF_METAGENERATION_NOT_MATCH = "ifMetagenerationNotMatch"
    USER_PROJECT = "userProject"
    CUSTOMER_SUPPLIED_KEY = "customerEncryptionKey"
    RETURN_RAW_INPUT_STREAM = "returnRawInputStream"


@dataclass(frozen=True)
class ObjectRef:
    bucket: str
    name: str
    generation: Optional[int] = None

    def with_generation(self, generation: int) -> ObjectRef:
        return dataclasses.replace(self, generation=generation)


def object_to_json(obj: ObjectRef) -> str:
    """Wire-style JSON for an object reference. Pure; callers may memoize it."""
    doc: dict[str, Any] = {"bucket": obj.bucket, "name": obj.name}
    if obj.generation is not None:
        # generations are int64 and travel as strings in JSON APIs
        doc["generation"] = str(obj.generation)
    return json.dumps(doc, separators=(",", ":"))


@dataclass(frozen=True)
class ByteRangeSpec:
    """Byte range of a read; ``end_offset`` is inclusive, ``None`` means to the end of the object."""

    begin_offset: int = 0
    end_offset: Optional[int] = None

    def __post_init__(self) -> None:
        if self.begin_offset < 0:
            raise ValueError(f"begin_offset must be >= 0, got {self.begin_offset}")
        if self.end_offset is not None and self.end_offset < self.begin_offset:
            raise ValueError(f"end_offset {self.end_offset} before begin_offset {self.begin_offset}")

    def with_new_begin_offset(self, begin_offset: int) -> ByteRangeSpec:
        return ByteRangeSpec(begin_offset, self.end_offset)

    def http_range_header(self) -> Optional[str]:
        if self.end_offset is not None:
            return f"bytes={self.begin_offset}-{self.end_offset}"
        if self.begin_offset > 0:
            return f"bytes={self.begin_offset}-"
        return None

    def __str__(self) -> str:
        return self.http_range_header() or "bytes=0-"


def _key_fingerprint(key: Any) -> str:
    try:
        raw = base64.b64decode(str(key), validate=True)
    except (binascii.Error, ValueError):
        return "<invalid key>"
    return "sha256:" + base64.b64encode(hashlib.sha256(raw).digest()).decode("ascii")


@dataclass(frozen=True)
class ReadRequest:
    """One logical download: which object, with which options, over which range."""

    obj: ObjectRef
    options: Mapping[ReadOption, Any] = dataclasses.field(default_factory=dict)
    byte_range: ByteRangeSpec = dataclasses.field(default_factory=ByteRangeSpec)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", types.MappingProxyType(dict(self.options)))

    @property
    def begin_offset(self) -> int:
        return self.byte_range.begin_offset

    def with_new_begin_offset(self, begin_offset: int) -> ReadRequest:
        if begin_offset > 0 and begin_offset != self.byte_range.begin_offset:
            return ReadRequest(self.obj, self.options, self.byte_range.with_new_begin_offset(begin_offset))
        return self

    def describe(self) -> str:
        """Readable form for logs; customer-supplied keys are reduced to a fingerprint."""
        opts = []
        for opt, value in self.options.items():
            if opt == ReadOption.CUSTOMER_SUPPLIED_KEY:
                value = _key_fingerprint(value)
            opts.append(f"{opt.value}={value}")
        return f"ReadRequest(range={self.byte_range}, options={{{', '.join(opts)}}}, object={object_to_json(self.obj)})"

    def __repr__(self) -> str:
        return self.describe()


class ReadableStream(Protocol):
    def readinto(self, buffer: Any) -> int: ...

    def close(self) -> None: ...


@dataclass
class OpenedStream:
    """An open ranged read as returned by the transport."""

    stream: ReadableStream
    # server-reported generation of the object being read, if the response carried one
    generation: Optional[int] = None


class ObjectOpener(Protocol):
    def open(self, request: ReadRequest, generation: Optional[int]) -> OpenedStream: ...


class RetryPolicy(Protocol):
    def should_retry(self, error: BaseException, previous_result: Any = None) -> bool: ...


@dataclass(frozen=True)
class ReadResult:
    bytes_read: int
    eof: bool = False
    # set on exactly one result per channel: the first time a generation is resolved
    resolved_object: Optional[ObjectRef] = None

    def __int__(self) -> int:
        return self.bytes_read


EOF = ReadResult(0, eof=True)
