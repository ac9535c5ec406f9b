import json
import logging

import pytest
import structlog

from discovery.core.logging import configure_structlog

pytestmark = pytest.mark.unit


def last_entry(capsys) -> dict:
    return json.loads(capsys.readouterr().err.strip().splitlines()[-1])


def test_json_logs_render_one_object_per_event(restore_logging, capsys):
    configure_structlog(log_level="DEBUG", json_logs=True, app_name="discovery-test")

    structlog.get_logger("discovery.test").info("research_query_routed", provider="tavily", attempts=1)

    entry = last_entry(capsys)
    assert entry["event"] == "research_query_routed"
    assert entry["provider"] == "tavily"
    assert entry["level"] == "info"
    assert entry["logger"] == "discovery.test"
    assert entry["app"] == "discovery-test"
    assert "timestamp" in entry


def test_bound_context_is_merged(restore_logging, capsys):
    configure_structlog(json_logs=True)

    with structlog.contextvars.bound_contextvars(operation="generate_prd", session_id="s-1"):
        structlog.get_logger("discovery.test").warning("prd_generated")

    entry = last_entry(capsys)
    assert entry["operation"] == "generate_prd"
    assert entry["session_id"] == "s-1"


def test_stdlib_records_share_the_handler(restore_logging, capsys):
    configure_structlog(json_logs=True)

    logging.getLogger("discovery.stdlib").error("plain stdlib message")

    entry = last_entry(capsys)
    assert entry["event"] == "plain stdlib message"
    assert entry["level"] == "error"


def test_level_and_transport_loggers(restore_logging):
    configure_structlog(log_level="WARNING", json_logs=False)

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("redis").level == logging.WARNING
