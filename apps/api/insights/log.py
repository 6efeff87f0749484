"""Logging setup shared by the API and the generation pipeline.

Usage:
    from .log import get_logger
    logger = get_logger(__name__)
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

_FMT = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install one stdout handler on the root logger; later calls only adjust the level."""
    from .config import settings

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FMT))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
