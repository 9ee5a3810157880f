from __future__ import annotations

import contextlib
from types import TracebackType
from typing import Any
from typing import Iterator
from typing import List
from typing import Optional
from typing import Sequence
from typing import Type

from storage_dataplane.errors import ResumptionError
from storage_dataplane.errors import StorageError
from storage_dataplane.errors import is_transport_error
from storage_dataplane.errors import translate_error
from storage_dataplane.services.transfer_id_service import get_logger_with_transfer_id
from storage_dataplane.services.transfer_id_service import resolve_transfer_id
from storage_dataplane.services.transfer_id_service import transfer_scope

from .types import EOF
from .types import ObjectOpener
from .types import ObjectRef
from .types import OpenedStream
from .types import ReadableStream
from .types import ReadRequest
from .types import ReadResult
from .types import RetryPolicy


class ResumableReadChannel:
    """A single logical byte stream over one or more ranged reads of an object.

    When the underlying stream breaks, the channel reopens it at the next
    unread offset, pinned to the generation reported by the first successful
    open. Whether a failure is worth another attempt is up to ``retry_policy``;
    the channel itself never sleeps or counts attempts.

    Not thread-safe: one caller at a time.
    """

    def __init__(
        self,
        request: ReadRequest,
        opener: ObjectOpener,
        retry_policy: RetryPolicy,
        transfer_id: Optional[str] = None,
    ):
        self._request = request
        self._opener = opener
        self._retry_policy = retry_policy

        # every record for this logical read, across reopens, shares one transfer id
        self.transfer_id = resolve_transfer_id(transfer_id)
        self._log = get_logger_with_transfer_id(__name__, self.transfer_id)

        self._position = request.byte_range.begin_offset
        self._stream: Optional[ReadableStream] = None
        self._open = True
        self._resolved_generation: Optional[int] = None
        self._resolved_object: Optional[ObjectRef] = None
        # resolved object not yet handed back in a ReadResult
        self._unreported_resolution: Optional[ObjectRef] = None
        self._failure: Optional[StorageError] = None

    @property
    def request(self) -> ReadRequest:
        return self._request

    @property
    def position(self) -> int:
        return self._position

    @property
    def resolved_generation(self) -> Optional[int]:
        return self._resolved_generation

    @property
    def resolved_object(self) -> Optional[ObjectRef]:
        return self._resolved_object

    def is_open(self) -> bool:
        return self._open

    def read(self, dsts: Sequence[Any]) -> ReadResult:
        """Fill ``dsts`` in order with the next bytes of the object.

        Returns the number of bytes placed. A result with ``eof`` set means the
        object is exhausted; the channel is closed from then on.
        """
        with transfer_scope(self.transfer_id):
            return self._read(dsts)

    def _read(self, dsts: Sequence[Any]) -> ReadResult:
        if self._failure is not None:
            raise self._failure
        if not self._open:
            return EOF

        views = [_as_writable_view(d) for d in dsts]
        if not any(len(v) for v in views):
            return ReadResult(0)

        while True:
            start = self._position
            if self._stream is None and self._range_exhausted():
                # bounded range fully delivered; a reopen would ask for bytes past end_offset
                self._open = False
                self._log.debug(f"Range of {self._request.obj.bucket}/{self._request.obj.name} complete at {self._position}")
                return self._result(0, eof=True)
            try:
                if self._stream is None:
                    self._stream = self._open_stream()
                self._scatter_read(self._stream, views)
            except ResumptionError as e:
                self._discard_stream()
                self._open = False
                self._failure = e
                self._log.error(f"Aborting read of {self._request.describe()} at offset {self._position}: {e.message}")
                raise
            except Exception as e:
                partial = self._position - start
                self._discard_stream()
                if not self._should_retry(e):
                    err = translate_error(e)
                    if err is e:
                        raise
                    raise err from e
                self._log.warning(
                    f"Retrying read of {self._request.obj.bucket}/{self._request.obj.name} "
                    f"from offset {self._position} after {type(e).__name__}: {e}"
                )
                if partial > 0:
                    # hand back what already landed in dsts; the next call reopens
                    return self._result(partial)
                continue

            read = self._position - start
            if read == 0:
                self._open = False
                self._discard_stream()
                self._log.debug(f"End of stream for {self._request.obj.bucket}/{self._request.obj.name} at {self._position}")
                return self._result(0, eof=True)
            return self._result(read)

    def read_into(self, buffer: Any) -> int:
        """Single-buffer read; 0 means end of stream."""
        return self.read([buffer]).bytes_read

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        buf = bytearray(chunk_size)
        while True:
            result = self.read([buf])
            if result.eof:
                return
            yield bytes(buf[: result.bytes_read])

    def close(self) -> None:
        self._open = False
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()

    def __enter__(self) -> ResumableReadChannel:
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def _open_stream(self) -> ReadableStream:
        request = self._request.with_new_begin_offset(self._position)
        generation = self._request.obj.generation
        if generation is None:
            generation = self._resolved_generation

        self._log.debug(f"Opening {request.describe()} (generation={generation})")
        try:
            opened: OpenedStream = self._opener.open(request, generation)
        except Exception as e:
            if self._resolved_generation is not None and (is_transport_error(e) or isinstance(e, StorageError)):
                if translate_error(e).code == 404:
                    raise ResumptionError(
                        f"Object {self._request.obj.bucket}/{self._request.obj.name} "
                        f"generation {self._resolved_generation} no longer exists",
                        generation=self._resolved_generation,
                    ) from e
            raise

        if self._resolved_generation is None:
            if opened.generation is not None:
                self._resolved_generation = opened.generation
                self._resolved_object = self._request.obj.with_generation(opened.generation)
                self._unreported_resolution = self._resolved_object
                self._log.info(
                    f"Resolved {self._request.obj.bucket}/{self._request.obj.name} to generation {opened.generation}"
                )
        elif opened.generation is not None and opened.generation != self._resolved_generation:
            with contextlib.suppress(Exception):
                opened.stream.close()
            raise ResumptionError(
                f"Object {self._request.obj.bucket}/{self._request.obj.name} changed from generation "
                f"{self._resolved_generation} to {opened.generation} mid-read",
                code=412,
                generation=self._resolved_generation,
            )

        return opened.stream

    def _range_exhausted(self) -> bool:
        end = self._request.byte_range.end_offset
        return end is not None and self._position > end

    def _scatter_read(self, stream: ReadableStream, views: List[memoryview]) -> None:
        # position advances per buffer so bytes delivered before a failure stay accounted for
        for view in views:
            if not len(view):
                continue
            n = stream.readinto(view) or 0
            self._position += n
            if n < len(view):
                return

    def _should_retry(self, error: Exception) -> bool:
        if self._retry_policy.should_retry(error, None):
            return True
        if is_transport_error(error):
            # a translated error may carry a status the policy recognises
            return self._retry_policy.should_retry(translate_error(error), None)
        return False

    def _discard_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            with contextlib.suppress(Exception):
                stream.close()

    def _result(self, n: int, eof: bool = False) -> ReadResult:
        resolved, self._unreported_resolution = self._unreported_resolution, None
        return ReadResult(n, eof=eof, resolved_object=resolved)


def _as_writable_view(buf: Any) -> memoryview:
    view = memoryview(buf)
    if view.readonly:
        raise TypeError(f"read destination must be writable, got {type(buf).__name__}")
    if view.ndim != 1 or view.itemsize != 1:
        view = view.cast("B")
    return view
