"""
Tests for the rate-limit guard.
"""

from datetime import datetime

import pytest

from conftest import BASE, FakeResponse, FakeSession, rate_limit_body
from ghfetch import ratelimit
from ghfetch.context import Connection
from ghfetch.errors import TransportError
from ghfetch.ratelimit import PROCEED, SKIP, WARN, RateLimitStatus, decide, parse_status

RATE_URL = f"{BASE}/rate_limit"


def run_guard(context):
    outcome = {}

    def proceed(ctx, stop=False):
        outcome["ctx"] = ctx
        outcome["stop"] = stop

    ratelimit.check(context, proceed)
    return outcome


class TestDecide:
    """Decision table."""

    def test_not_enough_remaining_skips(self):
        assert decide(RateLimitStatus(60, 1, 0), needed=2, warning=10) == SKIP

    def test_zero_remaining_skips(self):
        """An empty budget needs no special branch."""
        assert decide(RateLimitStatus(60, 0, 0), needed=1, warning=10) == SKIP

    def test_zero_remaining_with_nothing_needed_proceeds_with_warning(self):
        assert decide(RateLimitStatus(60, 0, 0), needed=0, warning=10) == WARN

    def test_at_threshold_warns(self):
        assert decide(RateLimitStatus(60, 10, 0), needed=2, warning=10) == WARN

    def test_plenty_proceeds(self):
        assert decide(RateLimitStatus(60, 59, 0), needed=2, warning=10) == PROCEED


class TestParseStatus:
    def test_reads_core_resource(self):
        status = parse_status(rate_limit_body(42, reset=1700000000))
        assert status.remaining == 42
        assert status.limit == 60
        assert status.reset == 1700000000

    def test_falls_back_to_rate(self):
        status = parse_status({"rate": {"remaining": 3, "reset": 5}})
        assert status.remaining == 3

    def test_malformed_body_is_transport_error(self):
        with pytest.raises(TransportError):
            parse_status({"unexpected": True})

    def test_reset_time_format(self):
        status = RateLimitStatus(60, 1, 1700000000)
        expected = datetime.fromtimestamp(1700000000).strftime("%I:%M:%S %p")
        assert status.reset_time == expected


class TestCheck:
    """Guard behavior on a job context."""

    def test_authenticated_job_issues_no_request(self, make_context):
        session = FakeSession()
        context = make_context(src=["users/a", "users/b"], token="secret", session=session)

        outcome = run_guard(context)

        assert session.calls == []
        assert outcome["stop"] is False

    def test_one_request_per_check(self, make_context):
        session = FakeSession({RATE_URL: FakeResponse(rate_limit_body(50))})
        context = make_context(src=["users/a", "users/b"], session=session)

        outcome = run_guard(context)

        assert session.calls == [RATE_URL]
        assert outcome["stop"] is False
        assert len(context.requests) == 0

    def test_insufficient_budget_stops_job(self, make_context, caplog):
        session = FakeSession({RATE_URL: FakeResponse(rate_limit_body(1))})
        context = make_context(src=["users/a", "users/b"], session=session)

        outcome = run_guard(context)

        assert outcome["stop"] is True
        assert context.skipped is True
        assert "Skipping" in caplog.text

    def test_low_budget_warns_with_reset_time(self, make_context, caplog):
        session = FakeSession({RATE_URL: FakeResponse(rate_limit_body(5, reset=1700000000))})
        context = make_context(src="users/a", session=session, warning=10)

        outcome = run_guard(context)

        assert outcome["stop"] is False
        assert RateLimitStatus(60, 5, 1700000000).reset_time in caplog.text

    def test_status_failure_propagates(self, make_context):
        session = FakeSession({RATE_URL: FakeResponse({"message": "boom"}, status_code=401)})
        context = make_context(src="users/a", session=session)

        with pytest.raises(TransportError):
            run_guard(context)

    def test_uses_context_session_while_batch_is_empty(self, make_context, monkeypatch):
        """An empty pending batch still lends its session to the guard."""
        def no_new_sessions():
            raise AssertionError("guard opened its own session")

        monkeypatch.setattr("ghfetch.transport.requests.Session", no_new_sessions)
        session = FakeSession({RATE_URL: FakeResponse(rate_limit_body(50))})
        context = make_context(src="users/a", session=session)
        assert len(context.requests) == 0

        run_guard(context)

        assert session.calls == [RATE_URL]

    def test_fetch_status_closes_its_own_session(self, monkeypatch):
        session = FakeSession({RATE_URL: FakeResponse(rate_limit_body(50))})
        monkeypatch.setattr("ghfetch.transport.requests.Session", lambda: session)

        status = ratelimit.fetch_status(Connection())

        assert status.remaining == 50
        assert session.closed is True
