# src/ar/logging_utils.py
"""
Application-wide logging setup.

Purpose:
- One logging configuration for the CLI and the long-running scheduler.
- Console output for interactive runs; an optional log file for the scheduler,
  which usually runs unattended and is only inspected after the fact.

Initialized once in main(). Module loggers are named after their modules
(ar.review, ar.scheduler, ...) except the generator telemetry, which logs
under "ar.llm" so token usage can be filtered on its own.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> None:
    """
    Configure root logging: stdout always, plus log_file when given.
    Unknown level names fall back to INFO.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(log_level)

    # force=True: repeated calls (tests, re-entrant CLI use) replace earlier handlers
    logging.basicConfig(level=log_level, handlers=handlers, format=LOG_FORMAT, force=True)
