import contextlib
import contextvars
import logging
import uuid
from typing import Any
from typing import Iterator
from typing import MutableMapping
from typing import Optional


NO_TRANSFER_ID = "no-transfer-id"

# id of the upload or download the current code path is working for
transfer_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("transfer_id", default=NO_TRANSFER_ID)


def generate_transfer_id() -> str:
    """Return a new 16 hex character id (the first 64 bits of a UUID4)."""
    return uuid.uuid4().hex[:16]


def resolve_transfer_id(transfer_id: Optional[str] = None) -> str:
    """Pick the id a new transfer should log under.

    An explicit id wins, then the id already bound in the current context
    (so a download started inside an upload handler shares its id), and only
    then a freshly generated one.
    """
    if transfer_id:
        return transfer_id
    current = transfer_id_context.get()
    if current != NO_TRANSFER_ID:
        return current
    return generate_transfer_id()


@contextlib.contextmanager
def transfer_scope(transfer_id: str) -> Iterator[str]:
    """Bind ``transfer_id`` to the context for the duration of the block.

    Records from plain module loggers emitted inside the block pick the id up
    through ``TransferIDFilter``.
    """
    token = transfer_id_context.set(transfer_id)
    try:
        yield transfer_id
    finally:
        transfer_id_context.reset(token)


class TransferIDLoggerAdapter(logging.LoggerAdapter):
    """Tags every record with the transfer it belongs to, whatever the context holds."""

    def __init__(self, logger: logging.Logger, transfer_id: Optional[str] = None):
        super().__init__(logger, {"transfer_id": transfer_id or NO_TRANSFER_ID})

    @property
    def transfer_id(self) -> str:
        return self.extra["transfer_id"] if self.extra else NO_TRANSFER_ID

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {})["transfer_id"] = self.transfer_id
        return msg, kwargs


def get_logger_with_transfer_id(name: str, transfer_id: Optional[str] = None) -> TransferIDLoggerAdapter:
    """Get a logger adapter bound to one transfer.

    Args:
        name: The name of the logger (typically __name__)
        transfer_id: The id to stamp on records. Defaults to the value bound in
            the current context.
    """
    return TransferIDLoggerAdapter(logging.getLogger(name), transfer_id or transfer_id_context.get())
