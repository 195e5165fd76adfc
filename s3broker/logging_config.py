from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "S3BROKER_LOG_LEVEL"
_LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
_HANDLER_NAME = "s3broker-console"

# boto3 logs request bodies at DEBUG, which include access keys.
_SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")

_LINE_COLORS = {
    logging.DEBUG: "\x1b[2m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1;31m",
}
_RESET = "\x1b[0m"


class ConsoleFormatter(logging.Formatter):
    """Colors the whole line by severity; INFO stays plain."""

    def __init__(self, *, color: bool) -> None:
        super().__init__(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
        self.color = color

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        prefix = _LINE_COLORS.get(record.levelno) if self.color else None
        return f"{prefix}{line}{_RESET}" if prefix else line


def _console_wants_color() -> bool:
    return "NO_COLOR" not in os.environ and sys.stderr.isatty()


def resolve_log_level(level: str | int | None = None) -> int:
    """Explicit level, else $S3BROKER_LOG_LEVEL, else INFO. Unknown names mean INFO."""
    if isinstance(level, int):
        return level
    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").strip().upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(*, level: str | int | None = None) -> int:
    """Attach the console handler to the root logger on first call; later calls only adjust levels."""
    resolved = resolve_log_level(level)
    root = logging.getLogger()
    root.setLevel(resolved)
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    ours = [handler for handler in root.handlers if handler.get_name() == _HANDLER_NAME]
    if ours:
        for handler in ours:
            handler.setLevel(resolved)
    elif not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setLevel(resolved)
        handler.setFormatter(ConsoleFormatter(color=_console_wants_color()))
        root.addHandler(handler)
    return resolved
