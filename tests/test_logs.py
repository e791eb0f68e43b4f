"""Tests for structlog configuration."""

from __future__ import annotations

import json

import structlog

from cardcomp.utils.logs import configure_logging


class TestConfigureLogging:
    def teardown_method(self) -> None:
        structlog.reset_defaults()

    def test_json_lines(self, capsys) -> None:
        """JSON output carries the event, level, timestamp and bound context."""
        configure_logging("INFO", json_output=True)
        logger = structlog.get_logger("cardcomp.test")
        with structlog.contextvars.bound_contextvars(trace_id="abc123"):
            logger.info("orchestrator_run_start", player="Mike Trout", source="orchestrator")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "orchestrator_run_start"
        assert line["level"] == "info"
        assert line["trace_id"] == "abc123"
        assert line["source"] == "orchestrator"
        assert "timestamp" in line

    def test_level_filtering(self, capsys) -> None:
        """Events below the configured level are dropped."""
        configure_logging("WARNING", json_output=True)
        logger = structlog.get_logger("cardcomp.test")
        logger.info("quiet_event", source="test")
        logger.warning("loud_event", source="test")

        out = capsys.readouterr().out
        assert "quiet_event" not in out
        assert "loud_event" in out
