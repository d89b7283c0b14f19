"""Tests for structured logging."""

from __future__ import annotations

import json
import logging

from hostzone.logging import configure_logging, get_logger


def test_console_fields(capsys):
    configure_logging(verbose=True)
    get_logger("hostzone.test").debug("Comparing candidate", path="/zoneinfo/Asia/Tokyo")
    err = capsys.readouterr().err
    assert "debug: Comparing candidate path=/zoneinfo/Asia/Tokyo" in err


def test_quiet_by_default(capsys):
    configure_logging()
    get_logger("hostzone.test").debug("hidden")
    get_logger("hostzone.test").warning("shown")
    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "warning: shown" in err


def test_json_log_file(tmp_path):
    log_file = tmp_path / "logs" / "hostzone.log"
    configure_logging(json_log=str(log_file))
    get_logger("hostzone.test").info("Resolved host timezone", timezone="Asia/Tokyo")
    for handler in logging.getLogger("hostzone").handlers:
        handler.flush()
    entry = json.loads(log_file.read_text().splitlines()[-1])
    assert entry["message"] == "Resolved host timezone"
    assert entry["timezone"] == "Asia/Tokyo"
    assert entry["level"] == "info"
    assert entry["logger"] == "hostzone.test"


def test_reconfigure_replaces_handlers():
    configure_logging()
    configure_logging()
    assert len(logging.getLogger("hostzone").handlers) == 1
