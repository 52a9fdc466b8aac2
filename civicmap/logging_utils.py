"""Logging configuration helpers."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "CIVICMAP_LOG_LEVEL"


def resolve_log_level(level: str | None = None) -> int:
    raw = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    return getattr(logging, raw, logging.INFO)


def configure_logging(level: str | None = None) -> None:
    resolved = resolve_log_level(level)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Package logger level applies even when handlers already exist.
    logging.getLogger("civicmap").setLevel(resolved)
