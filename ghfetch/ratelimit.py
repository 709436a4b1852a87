"""
Rate-limit guard.

Anonymous GitHub access has a small hourly budget. Before a job spends any
of it the guard asks ``/rate_limit`` how much is left and either lets the
job through, warns, or ends the job early as a successful no-op.
Authenticated jobs skip the check entirely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .context import Connection, JobContext
from .errors import TransportError
from .logger import get_logger
from .paths import request_path
from .transport import RequestBatch

logger = get_logger()

RATE_LIMIT_PATH = "rate_limit"
RESET_FORMAT = "%I:%M:%S %p"

PROCEED = "proceed"
WARN = "warn"
SKIP = "skip"


@dataclass
class RateLimitStatus:
    limit: int
    remaining: int
    reset: int

    @property
    def reset_time(self) -> str:
        return datetime.fromtimestamp(self.reset).strftime(RESET_FORMAT)


def parse_status(body) -> RateLimitStatus:
    """Read the core budget from a ``/rate_limit`` response body."""
    try:
        rate = body.get("resources", {}).get("core") or body["rate"]
        return RateLimitStatus(
            limit=int(rate.get("limit", 0)),
            remaining=int(rate["remaining"]),
            reset=int(rate["reset"]),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise TransportError(f"Unexpected rate limit response: {body!r}") from e


def fetch_status(connection: Connection, batch: Optional[RequestBatch] = None, token: Optional[str] = None) -> RateLimitStatus:
    """Issue exactly one rate-limit request."""
    if batch is None:
        with RequestBatch() as own:
            return fetch_status(connection, own, token)
    batch.add(connection, request_path(RATE_LIMIT_PATH, None, token), False, None)
    triple = batch.send()[0]
    return parse_status(triple.pages[0] if triple.pages else None)


def decide(status: RateLimitStatus, needed: int, warning: int) -> str:
    # An empty budget is covered by the first comparison.
    if status.remaining < needed:
        return SKIP
    if status.remaining <= warning:
        return WARN
    return PROCEED


def check(context: JobContext, proceed) -> None:
    """Stage: reads options and src; writes skipped when the budget is too low."""
    options = context.options
    if options.authenticated:
        proceed(context)
        return

    # An empty batch is falsy, so test for None.
    session = context.requests.session if context.requests is not None else None
    status = fetch_status(options.connection, RequestBatch(session=session))
    needed = context.request_count
    action = decide(status, needed, options.rate_limit_warning)

    if action == SKIP:
        logger.warning(
            "Not enough public API requests remaining to complete this job. Skipping it.",
            job=context.name, remaining=status.remaining, needed=needed, reset=status.reset_time,
        )
        context.skipped = True
        proceed(context, True)
        return

    if action == WARN:
        logger.warning(
            "You are about to hit the public API request limit. "
            "Add an access token to avoid it. "
            f"Limit resets at {status.reset_time}",
            job=context.name, remaining=status.remaining,
        )
    proceed(context)
