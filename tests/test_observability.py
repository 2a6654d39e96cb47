"""Tests for request-context logging and retrospective span attributes."""

import json
import logging

import pytest

from retrospectify import logging_config, telemetry
from retrospectify.logging_config import (
    ContextAwareFormatter,
    ContextAwareJsonFormatter,
    clear_request_context,
    set_correlation_id,
    set_current_user,
    set_team_id,
)


@pytest.fixture(autouse=True)
def reset_context():
    clear_request_context()
    yield
    clear_request_context()


def make_record(msg="Report ready for %s", args=("Platform",)):
    return logging.LogRecord("retrospectify.report", logging.INFO, __file__, 1, msg, args, None)


class TestRequestContextFields:
    def test_empty_outside_a_request(self):
        assert logging_config.request_context_fields() == {}

    def test_includes_team(self):
        set_correlation_id("abcdef0123456789")
        set_current_user("mia")
        set_team_id("team-1")
        assert logging_config.request_context_fields() == {
            "correlation_id": "abcdef0123456789",
            "user": "mia",
            "team_id": "team-1",
        }

    def test_clear_request_context(self):
        set_team_id("team-1")
        clear_request_context()
        assert logging_config.get_team_id() is None


class TestFormatters:
    def test_human_prefix(self):
        set_correlation_id("abcdef0123456789")
        set_current_user("mia")
        set_team_id("0123456789abcdef")

        line = ContextAwareFormatter("%(message)s").format(make_record())

        assert line == "[abcdef01] [mia] [team:01234567] Report ready for Platform"

    def test_human_without_context_is_unchanged(self):
        assert ContextAwareFormatter("%(message)s").format(make_record()) == "Report ready for Platform"

    def test_json_fields(self):
        set_team_id("team-1")
        formatter = ContextAwareJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")

        payload = json.loads(formatter.format(make_record()))

        assert payload["message"] == "Report ready for Platform"
        assert payload["level"] == "INFO"
        assert payload["team_id"] == "team-1"
        assert "user" not in payload


class TestRetroSpanAttributes:
    def test_namespaced_and_none_dropped(self):
        attributes = telemetry.retro_span_attributes(team_id="team-1", poll_count=3, rating=None)
        assert attributes == {"retro.team_id": "team-1", "retro.poll_count": 3}

    def test_team_taken_from_request_context(self):
        set_team_id("team-9")
        assert telemetry.retro_span_attributes(rating=4) == {
            "retro.team_id": "team-9",
            "retro.rating": 4,
        }

    def test_trace_span_is_noop_when_disabled(self):
        assert not telemetry.is_telemetry_enabled()
        with telemetry.trace_span("retro.categorize", rating=4) as span:
            span.set_attribute("retro.category", "discuss")
