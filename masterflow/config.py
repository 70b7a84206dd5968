"""Service configuration read from the environment."""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ServiceConfig:
    output_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "masterflow")
    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    s3_prefix: str = "mastered/"
    inference: str = "passthrough"
    max_completed_jobs: int = 20
    max_error_entries: int = 50
    worker_poll_interval: float = 0.5
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        defaults = cls()
        output_dir = os.getenv("MASTERFLOW_OUTPUT_DIR")
        return cls(
            output_dir=Path(output_dir) if output_dir else defaults.output_dir,
            s3_bucket=os.getenv("MASTERFLOW_S3_BUCKET") or None,
            s3_region=os.getenv("MASTERFLOW_S3_REGION") or os.getenv("AWS_REGION") or None,
            s3_prefix=os.getenv("MASTERFLOW_S3_PREFIX", defaults.s3_prefix),
            inference=os.getenv("MASTERFLOW_INFERENCE", defaults.inference),
            max_completed_jobs=int(os.getenv("MASTERFLOW_MAX_COMPLETED", defaults.max_completed_jobs)),
            max_error_entries=int(os.getenv("MASTERFLOW_MAX_ERRORS", defaults.max_error_entries)),
            worker_poll_interval=float(os.getenv("MASTERFLOW_WORKER_POLL", defaults.worker_poll_interval)),
            log_level=os.getenv("MASTERFLOW_LOG_LEVEL", defaults.log_level).upper(),
            cors_origins=_env_list("MASTERFLOW_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the ``masterflow`` logger."""

    logger = logging.getLogger("masterflow")
    logger.setLevel(level)
    if not any(getattr(h, "_masterflow", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._masterflow = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
