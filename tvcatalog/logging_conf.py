"""
Logging configuration helpers.

Deutsch:
    Logging-Konfiguration.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

# HTTP and cache clients log every connection at DEBUG/INFO.
NOISY_LOGGERS = ("urllib3", "requests", "redis")


def configure_logging(default_level: str = "INFO", noisy: Iterable[str] = NOISY_LOGGERS) -> None:
    """
    Configure the root logger once; later calls only adjust levels.

    ``TVCATALOG_LOGLEVEL`` overrides ``default_level``. Client libraries stay at
    WARNING unless the effective level is DEBUG.

    Deutsch:
        Richtet das Root-Logging einmalig ein; TVCATALOG_LOGLEVEL überschreibt das Level.
    """

    level_name = os.getenv("TVCATALOG_LOGLEVEL", default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        )

    for name in noisy:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)
