"""Simple logging setup for the application."""

from __future__ import annotations

import logging
import os

from asgi_correlation_id import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | [%(correlation_id)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=level_name, format=LOG_FORMAT)
    for handler in root.handlers:
        handler.addFilter(CorrelationIdFilter(uuid_length=32, default_value="-"))
