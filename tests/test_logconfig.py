"""
Logging Setup Tests
===================
"""

import json
import logging

import pytest
import structlog

from handoff_auth.logconfig import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for structlog to stdlib routing."""

    def test_json_output(self, capsys, restore_logging):
        """structlog events render as JSON with bound context."""
        setup_logging("s3-gateway", level="INFO", json_output=True)

        with structlog.contextvars.bound_contextvars(trans_id="tx-42"):
            structlog.get_logger("handoff_auth.test").info("handoff_auth_success", user_id="u1")

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
        record = next(r for r in lines if r["message"] == "handoff_auth_success")
        assert record["service"] == "s3-gateway"
        assert record["trans_id"] == "tx-42"
        assert record["user_id"] == "u1"
        assert record["level"] == "INFO"

    def test_level_filtering(self, capsys, restore_logging):
        setup_logging("s3-gateway", level="WARNING", json_output=True)

        structlog.get_logger("handoff_auth.test").info("quiet_event")

        assert "quiet_event" not in capsys.readouterr().out

    def test_text_output(self, capsys, restore_logging):
        setup_logging("s3-gateway", level="INFO", json_output=False)

        structlog.get_logger("handoff_auth.test").warning("channel_rejected", endpoint="bad:1")

        out = capsys.readouterr().out
        assert "channel_rejected" in out
        assert "endpoint=bad:1" in out

    def test_trans_id_on_stdlib_records(self, capsys, restore_logging):
        """Records from plain stdlib loggers carry the bound transaction id."""
        setup_logging("s3-gateway", level="INFO", json_output=True)

        with structlog.contextvars.bound_contextvars(trans_id="tx-43"):
            logging.getLogger("grpc.aio").warning("channel reset")
        logging.getLogger("grpc.aio").warning("idle")

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
        inside = next(r for r in lines if r["message"] == "channel reset")
        outside = next(r for r in lines if r["message"] == "idle")
        assert inside["trans_id"] == "tx-43"
        assert "trans_id" not in outside
