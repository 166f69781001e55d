"""Tests for process logging helpers."""
from __future__ import annotations

import json
import logging

from firecnc.utils.logging import JsonFormatter, to_logging_level


def test_device_levels_map_to_stdlib():
    assert to_logging_level("WARN") == logging.WARNING
    assert to_logging_level("error") == logging.ERROR
    assert to_logging_level("DEBUG") == logging.DEBUG
    assert to_logging_level("bogus") == logging.INFO


def test_json_formatter_payload():
    record = logging.LogRecord("watchdog", logging.WARNING, __file__, 1, "Reboot %s", ("queued",), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "watchdog"
    assert payload["message"] == "Reboot queued"
