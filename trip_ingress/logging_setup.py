"""Logging configuration for the trip ingress service."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level_name: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    level = _resolve_level(level_name)
    root_logger = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)

    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return

    logging.basicConfig(level=level, format=LOG_FORMAT)
