"""
Pytest configuration and shared fixtures.
"""

import json

import pytest
import requests

from ghfetch.cache import CacheStore
from ghfetch.context import Connection, JobContext, JobOptions, TaskOptions
from ghfetch.transport import RequestBatch
from ghfetch.writer import WriteQueue

BASE = "https://api.github.com"


class FakeResponse:
    """Just enough of requests.Response for the transport."""

    def __init__(self, body=None, status_code=200, next_url=None, headers=None):
        self.status_code = status_code
        self.content = b"" if body is None else json.dumps(body).encode("utf-8")
        self._body = body
        self.links = {"next": {"url": next_url}} if next_url else {}
        self.headers = headers or {}

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """
    Serves queued responses per URL and records every GET.

    A route value may be a FakeResponse, a list of them (served in turn, the
    last one repeating) or an exception instance to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.closed = False

    def close(self):
        self.closed = True

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        if url not in self.routes:
            return FakeResponse({"message": "Not Found"}, status_code=404)
        route = self.routes[url]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        return route

    def paths(self):
        return [url[len(BASE) + 1:] for url in self.calls]


def rate_limit_body(remaining, limit=60, reset=1700000000):
    return {
        "resources": {"core": {"limit": limit, "remaining": remaining, "reset": reset}},
        "rate": {"limit": limit, "remaining": remaining, "reset": reset},
    }


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def no_sleep(monkeypatch):
    """Make retry backoff instant."""
    monkeypatch.setattr("ghfetch.retry.time.sleep", lambda seconds: None)


@pytest.fixture
def make_context(tmp_path, monkeypatch):
    """Factory for job contexts rooted in a temporary working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    def _make(
        src=None,
        dest=None,
        session=None,
        name="repo",
        kind="data",
        cache=True,
        token=None,
        output="out",
        filters=None,
        warning=10,
    ):
        cache_path = tmp_path / ".ghfetch-cache.json"
        options = JobOptions(
            connection=Connection(),
            output=output,
            filters=filters or {},
            token=token,
            rate_limit_warning=warning,
            cache_path=str(cache_path),
            task=TaskOptions(name=name, kind=kind, cache=cache),
        )
        return JobContext(
            name=name,
            options=options,
            src=src,
            dest=dest,
            requests=RequestBatch(session=session if session is not None else FakeSession()),
            writes=WriteQueue(),
            cache=CacheStore(cache_path),
        )

    return _make
