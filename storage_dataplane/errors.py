"""Failure vocabulary for the data plane.

Every failure that leaves this package is a ``StorageError`` tagged with a
``FailureKind``. ``translate_error`` is the one place raw transport errors
(httpx exceptions, socket-level ``OSError``) become ``StorageError``.
"""

from __future__ import annotations

import enum
from typing import Optional

import httpx


RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# code used when a failure has no HTTP status attached
NO_STATUS = 0


class FailureKind(str, enum.Enum):
    TRANSPORT = "transport"
    RESUMPTION = "resumption"
    END_OF_STREAM = "end_of_stream"
    OTHER = "other"


class StorageError(Exception):
    """Exception class for data plane failures."""

    def __init__(
        self,
        kind: FailureKind,
        message: str = "",
        code: int = NO_STATUS,
        retryable: bool = False,
    ):
        self.kind = kind
        self.code = code
        self.retryable = retryable

        if not message:
            if kind == FailureKind.RESUMPTION:
                message = "Failure while trying to resume download"
            elif code:
                message = f"Storage error: HTTP {code}"
            else:
                message = f"Storage error: {kind.value}"

        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"StorageError(kind={self.kind.value}, code={self.code}, retryable={self.retryable}, message={self.message!r})"


class ResumptionError(StorageError):
    """The object generation a read was pinned to is gone or has changed.

    Never retryable: continuing would splice bytes from two generations.
    """

    def __init__(self, message: str = "", code: int = 404, generation: Optional[int] = None):
        super().__init__(FailureKind.RESUMPTION, message, code=code, retryable=False)
        self.generation = generation


def is_transport_error(exc: BaseException) -> bool:
    """True for protocol/network level errors that ``translate_error`` knows how to classify."""
    return isinstance(exc, (httpx.HTTPError, httpx.StreamError, OSError))


def translate_error(exc: BaseException) -> StorageError:
    """Map a raw failure onto ``StorageError``; ``StorageError`` passes through unchanged."""
    if isinstance(exc, StorageError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        err = StorageError(
            FailureKind.TRANSPORT,
            f"HTTP {status} from {exc.request.url}: {exc.response.reason_phrase}",
            code=status,
            retryable=status in RETRYABLE_STATUS_CODES,
        )
    elif isinstance(exc, (httpx.TransportError, httpx.StreamError, ConnectionError, TimeoutError)):
        err = StorageError(FailureKind.TRANSPORT, f"{type(exc).__name__}: {exc}", retryable=True)
    elif isinstance(exc, (httpx.HTTPError, OSError)):
        err = StorageError(FailureKind.TRANSPORT, f"{type(exc).__name__}: {exc}", retryable=False)
    else:
        return coalesce(exc)

    err.__cause__ = exc
    return err


def coalesce(exc: BaseException) -> StorageError:
    """Wrap anything that is not already a ``StorageError``."""
    if isinstance(exc, StorageError):
        return exc
    err = StorageError(FailureKind.OTHER, f"{type(exc).__name__}: {exc}")
    err.__cause__ = exc
    return err
