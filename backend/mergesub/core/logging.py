from __future__ import annotations
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # per-request access lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
