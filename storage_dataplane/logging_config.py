import logging
import os
import sys
from typing import List
from typing import Optional
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from storage_dataplane.config import get_config
from storage_dataplane.services.transfer_id_service import transfer_id_context


# transport libraries log every request at DEBUG; a resumed download would drown in them
TRANSPORT_LOGGERS = ("httpx", "httpcore")

TRANSFER_FORMAT = "%(asctime)s - [%(transfer_id)s] - %(name)s - %(levelname)s - %(message)s"
PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


class TransferIDFilter(logging.Filter):
    """Stamps records that lack a ``transfer_id`` with the one bound in the context.

    Channel records already carry their id through the adapter; this covers
    module loggers (checksum, segmenter, errors) running inside a transfer
    scope, and keeps the format string valid outside of one.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "transfer_id"):
            record.transfer_id = transfer_id_context.get()
        return True


def build_handlers(config: LoggingConfig, component: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": "storage-dataplane",
                    "component": component,
                    "environment": config.environment,
                    "host": os.getenv("HOSTNAME", "unknown"),
                },
                timeout=10,
                compressed=True,
            )
        )
    return handlers


def setup_logging(
    config: Optional[LoggingConfig] = None,
    component: str = "dataplane",
    include_transfer_id: bool = True,
) -> logging.Logger:
    """Configure root logging for a process that moves objects.

    Args:
        config: Logging settings; read from the environment when omitted.
        component: Loki ``component`` label and name of the returned logger
            (e.g. "uploader", "downloader").
        include_transfer_id: Put the transfer id in every line.
    """
    if config is None:
        config = get_config()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    handlers = build_handlers(config, component)

    if include_transfer_id:
        transfer_id_filter = TransferIDFilter()
        for handler in handlers:
            handler.addFilter(transfer_id_filter)

    logging.basicConfig(
        level=log_level,
        format=TRANSFER_FORMAT if include_transfer_id else PLAIN_FORMAT,
        handlers=handlers,
    )

    # keep request chatter out unless the data plane itself is being debugged
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(log_level if log_level <= logging.DEBUG else max(log_level, logging.WARNING))

    return logging.getLogger(component)
