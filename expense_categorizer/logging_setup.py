"""Logging configuration for the ``expense_categorizer`` package.

Two helpers are exposed:

- ``configure_logging(...)`` installs one ``StreamHandler`` on the package
  logger (``"expense_categorizer"``). Host processes (the CLI, a web worker)
  call it once at startup; repeated calls are ignored.
- ``get_logger(name)`` returns a named logger. Until a host configures
  logging, the package logger carries a ``NullHandler`` so importing the
  library never writes to the terminal.

Modules in this package only ever call
``get_logger("expense_categorizer.<module>")``. Log messages follow the
``"<operation>:<event> key=value"`` shape and never include transaction
descriptions or amounts.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "expense_categorizer"
_LEVEL_ENV = "EXPENSE_CATEGORIZER_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None) -> int:
    """Turn ``level`` (int, name or numeric string) into a logging level.

    ``None`` consults ``EXPENSE_CATEGORIZER_LOG_LEVEL`` and then defaults to
    ``logging.INFO``. Unknown names also resolve to ``INFO``.
    """

    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv(_LEVEL_ENV)
        if not level:
            return logging.INFO
    text = level.strip().upper()
    if text.isdigit():
        return int(text)
    numeric = logging.getLevelNamesMapping().get(text)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach the package handler exactly once.

    Parameters
    ----------
    level:
        Level as an ``int`` or a name such as ``"DEBUG"``. ``None`` reads the
        ``EXPENSE_CATEGORIZER_LOG_LEVEL`` environment variable.
    fmt:
        Optional format string; defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Destination stream, ``sys.stderr`` when omitted.
    """

    global _configured
    if _configured:
        return

    resolved = resolve_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a silent default for libraries."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
