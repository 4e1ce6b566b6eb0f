from __future__ import annotations

import logging
import sys

from pwtelemetry.core.logger import configure_structlog


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    configure_structlog(fmt)
