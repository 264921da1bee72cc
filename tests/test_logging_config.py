"""
Tests for structured logging and environment config.
"""
import io
import json
import logging
import sys
import threading
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.config import EngineConfig
from wip_engine.logging_config import (
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _structured_handlers():
    # pytest adds its own capture handlers to non-propagating loggers
    return [
        h for h in logging.getLogger("wip_engine").handlers
        if isinstance(h.formatter, StructuredFormatter)
    ]


@pytest.fixture
def log_stream():
    reset_logging()
    stream = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)
    yield stream
    reset_logging()


class TestStructuredLogging:

    def test_json_line_with_extra_fields(self, log_stream):
        get_logger("tests").info("loaded", extra={"total": Decimal("12.50"), "as_of": date(2024, 6, 14)})

        payload = json.loads(log_stream.getvalue().strip())

        assert payload["level"] == "INFO"
        assert payload["logger"] == "wip_engine.tests"
        assert payload["message"] == "loaded"
        assert payload["total"] == "12.50"
        assert payload["as_of"] == "2024-06-14"

    def test_configure_is_idempotent(self, log_stream):
        configure_logging(level=logging.DEBUG, stream=io.StringIO())

        assert len(_structured_handlers()) == 1

    def test_concurrent_configure_installs_one_handler(self):
        """Every caller returns with the handler already in place."""
        reset_logging()
        seen = []

        def configure():
            configure_logging(level=logging.DEBUG, stream=io.StringIO())
            seen.append(len(_structured_handlers()))

        threads = [threading.Thread(target=configure) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        try:
            assert seen == [1] * 8
        finally:
            reset_logging()


class TestEngineConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SCHEDULE_SLACK_DAYS", raising=False)
        monkeypatch.delenv("WEEK_END_DAY", raising=False)

        cfg = EngineConfig()

        assert cfg.schedule_slack_days == 14
        assert cfg.week_end_day == "Friday"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCHEDULE_SLACK_DAYS", "0")
        monkeypatch.setenv("WEEK_END_DAY", "Sunday")
        monkeypatch.setenv("APP_ENV", "prod")

        cfg = EngineConfig()

        assert cfg.schedule_slack_days == 0
        assert cfg.week_end_day == "Sunday"
        assert cfg.is_prod is True
