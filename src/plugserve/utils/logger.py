# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Logging setup for plugin processes.

The handshake owns ``stdout``, so the only handler installed here writes to
``stderr``. Records render as colored or plain text, or as one ``orjson``
object per line when ``PLUGSERVE_LOG_JSON`` is set.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, ClassVar, Final

import orjson as oj


DEFAULT_LOGGER_NAME: Final[str] = "plugserve"
ENV_LOG_LEVEL: Final[str] = "PLUGSERVE_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "PLUGSERVE_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

RESET: Final[str] = "\033[0m"
NAME_COLOR: Final[str] = "\033[94m"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class ColoredFormatter(logging.Formatter):
    """Color the level and logger name with ANSI escapes."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[1;31m",
        "CRITICAL": "\033[1;35m",
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{NAME_COLOR}{name}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name


class JSONFormatter(logging.Formatter):
    """One JSON object per record. Fields passed via ``extra=`` land under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "pid": record.process,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}
        if context:
            payload["context"] = context

        return oj.dumps(payload, default=str).decode()


class PlugserveHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """StreamHandler managed by plugserve. Always bound to ``stderr``."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)


def _has_plugserve_handler(root: logging.Logger) -> bool:
    return any(isinstance(handler, PlugserveHandler) for handler in root.handlers)


def _env_flag(key: str) -> bool:
    return os.getenv(key, "").strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach the plugserve stderr handler to the root logger.

    Args:
        level: Log level. Falls back to ``PLUGSERVE_LOG_LEVEL``, then ``INFO``.
        use_json: JSON lines instead of text. Defaults to ``PLUGSERVE_LOG_JSON``.
        use_color: ANSI colors. Defaults to on unless ``NO_COLOR`` is set or
            JSON output is active.
        fmt: Format string for text output.
        datefmt: Date format for both text and JSON output.
        force: Replace a handler installed by an earlier call.
    """
    root = logging.getLogger()

    if _has_plugserve_handler(root):
        if not force:
            return
        for handler in [h for h in root.handlers if isinstance(h, PlugserveHandler)]:
            root.removeHandler(handler)
            handler.close()

    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)

    json_output = use_json if use_json is not None else _env_flag(ENV_LOG_JSON)
    if use_color is None:
        use_color = not json_output and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if json_output:
        formatter = JSONFormatter(datefmt=datefmt)
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = PlugserveHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return *name* (default ``plugserve``), installing the handler on first use."""
    if not _has_plugserve_handler(logging.getLogger()):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "JSONFormatter",
    "PlugserveHandler",
    "get_logger",
    "setup_logger",
]
