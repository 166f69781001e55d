"""
Process logging for the supervisor, the API and the runner scripts.

This is the console side of the device. The control-panel system log lives
in ``firecnc.supervisor.notifications`` and mirrors into the loggers set up
here, so a single handler configuration covers both.

Environment:
    FIRECNC_LOG_LEVEL   DEBUG | INFO | WARNING | ERROR (default INFO)
    FIRECNC_LOG_FORMAT  text | json (default text)

``setup_logging`` configures the root logger once per process; later calls
are ignored so the API and the scripts can both call it unconditionally.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

_DEVICE_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``message``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def to_logging_level(level: str) -> int:
    """Map a device log level name (``WARN``, ``ERROR``...) onto a stdlib level."""
    return _DEVICE_LEVELS.get(str(level).upper(), logging.INFO)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    *,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[object] = None,
    file_path: Optional[str] = None,
) -> None:
    root = logging.getLogger()
    if getattr(root, "_firecnc_configured", False):
        return

    level = to_logging_level(log_level or os.getenv("FIRECNC_LOG_LEVEL", "INFO"))
    formatter = _build_formatter((log_format or os.getenv("FIRECNC_LOG_FORMAT", "text")).lower())

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if file_path:
        handlers.append(logging.FileHandler(file_path))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)

    root.setLevel(level)
    root.handlers = handlers
    root._firecnc_configured = True
