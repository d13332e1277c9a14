"""Logging configuration helpers for the contact sheet tool."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from contact_sheet.exceptions import InvalidInput

DEFAULT_LOGGER_NAME = "contact_sheet"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
# Capture and join work runs on named pool threads ("capture_0", "join_1", ...).
VERBOSE_LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(threadName)s] %(name)s: %(message)s"


def _file_handler(log_file: Union[str, Path]) -> logging.Handler:
    log_path = Path(log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8")
    except OSError as exc:
        raise InvalidInput(f"cannot open log file {log_path}: {exc}") from exc


def configure_logging(
    logger_name: Optional[str] = None,
    *,
    verbose: bool = False,
    log_file: Union[str, Path, None] = None,
    include_stream: bool = True,
) -> logging.Logger:
    """Configure application logging and return a ready-to-use logger.

    Parameters
    ----------
    logger_name:
        Name of the logger to return. Defaults to ``"contact_sheet"`` when omitted.
    verbose:
        Show per-capture and per-frame DEBUG records on the terminal, tagged
        with the worker thread that produced them.
    log_file:
        Optional log file. It always receives the full DEBUG trace, so a failed
        run can be diagnosed without re-running with ``--verbose``.
    include_stream:
        When ``True`` (default) attach a `logging.StreamHandler` for terminal feedback.
    """

    handlers: List[logging.Handler] = []
    if log_file:
        file_handler = _file_handler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT))
        handlers.append(file_handler)

    if include_stream:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        stream_handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT))
        handlers.append(stream_handler)

    root_level = logging.DEBUG if verbose or log_file else logging.INFO
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    logger = logging.getLogger(logger_name or DEFAULT_LOGGER_NAME)
    logger.setLevel(root_level)
    return logger


__all__ = ["DEFAULT_LOGGER_NAME", "LOG_FORMAT", "VERBOSE_LOG_FORMAT", "configure_logging"]
