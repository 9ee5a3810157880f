import dataclasses

import dotenv

from storage_dataplane.utils import as_bool
from storage_dataplane.utils import env


dotenv.load_dotenv()


KIB = 1024
MIB = 1024 * KIB


@dataclasses.dataclass
class Config:
    """Data plane configuration settings."""

    # Logging
    log_level: str = env("DATAPLANE_LOG_LEVEL:INFO")
    environment: str = env("DATAPLANE_ENVIRONMENT:development")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)

    # Upload segmentation
    # 2 MiB is the largest message body most object stores accept per write frame
    max_segment_size: int = env(f"DATAPLANE_MAX_SEGMENT_SIZE:{2 * MIB}", convert=int)
    # Resumable upload offsets must land on 256 KiB boundaries
    block_size: int = env(f"DATAPLANE_BLOCK_SIZE:{256 * KIB}", convert=int)
    checksums_enabled: bool = env("DATAPLANE_CHECKSUMS_ENABLED:true", convert=as_bool)
    segment_copy: bool = env("DATAPLANE_SEGMENT_COPY:true", convert=as_bool)


def get_config() -> Config:
    """Get data plane configuration."""
    cfg = Config()

    if cfg.max_segment_size < 1:
        raise ValueError(f"DATAPLANE_MAX_SEGMENT_SIZE must be positive, got {cfg.max_segment_size}")
    if cfg.block_size < 1:
        raise ValueError(f"DATAPLANE_BLOCK_SIZE must be positive, got {cfg.block_size}")

    # Normalize log level (strip quotes/whitespace)
    level = (cfg.log_level or "INFO").strip().strip("\"'").upper()
    object.__setattr__(cfg, "log_level", level or "INFO")

    return cfg
