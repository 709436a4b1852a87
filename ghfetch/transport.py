"""Request batching and execution against the GitHub API."""

from typing import Any, List, Optional, Union

import requests

from .context import Connection, PendingRequest, ResponseTriple, TaskOptions
from .errors import TransportError
from .logger import get_logger
from .paths import redact, redact_text
from .retry import RetryError, exponential_backoff, should_retry_http_status

logger = get_logger()


class RetryableStatus(Exception):
    """Internal signal that a response status is worth another attempt."""

    def __init__(self, response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _log_retry(attempt: int, exc: Exception, delay: float):
    logger.warning("Retrying request", attempt=attempt, error=redact_text(str(exc)), delay=delay)


@exponential_backoff(
    max_retries=3,
    base_delay=1.0,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, RetryableStatus),
    on_retry=_log_retry,
)
def _get_with_retry(session, url: str, headers: dict, timeout: float):
    """GET ``url``, retrying timeouts, dropped connections and 408/429/5xx."""
    logger.record_api_call()
    resp = session.get(url, headers=headers, timeout=timeout)
    if should_retry_http_status(resp.status_code):
        raise RetryableStatus(resp)
    return resp


def fetch_with_error_handling(session, url: str, connection: Connection):
    """Fetch one URL and return the response.

    Raises:
        TransportError: On any HTTP error, exhausted retries or request failure
    """
    shown = redact(url)
    try:
        resp = _get_with_retry(session, url, connection.request_headers(), connection.timeout)
        resp.raise_for_status()
        return resp
    except RetryError as e:
        cause = e.__cause__
        status = cause.response.status_code if isinstance(cause, RetryableStatus) else None
        logger.record_error("RetryExhausted")
        logger.error("Request failed after retries", url=shown, status=status)
        raise TransportError(f"Request failed after retries: {shown} ({redact_text(str(cause))})", url=shown, status=status) from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.record_error(f"HTTPError_{status}")
        if status == 403 and e.response.headers.get("X-RateLimit-Remaining") == "0":
            logger.error("Rate limit exceeded", url=shown)
            raise TransportError(f"Rate limit exceeded: {shown}", url=shown, status=status) from e
        if status == 404:
            logger.warning("Resource not found", url=shown, status=404)
            raise TransportError(f"Resource not found (404): {shown}", url=shown, status=status) from e
        logger.error("Request failed", url=shown, status=status)
        raise TransportError(f"Request failed ({status}): {shown}", url=shown, status=status) from e
    except requests.exceptions.RequestException as e:
        logger.record_error("RequestException")
        error = redact_text(str(e))
        logger.error("Request error", url=shown, error=error)
        raise TransportError(f"Request error: {error}", url=shown) from e


def _decode(resp, url: str) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as e:
        raise TransportError(f"Response is not JSON: {redact(url)}", url=redact(url), status=resp.status_code) from e


class RequestBatch:
    """
    Pending request descriptors and their execution.

    Requests are executed one at a time in the order they were added. Every
    ``Link: rel="next"`` header is followed, so each request yields the
    ordered list of its pages.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()
        self.pending: List[PendingRequest] = []

    def add(self, connection: Connection, path: str, dest: Union[str, bool], task: Optional[TaskOptions]) -> None:
        self.pending.append(PendingRequest(connection=connection, path=path, dest=dest, task=task))

    def __len__(self) -> int:
        return len(self.pending)

    def close(self) -> None:
        """Close the session if this batch opened it; injected sessions stay open."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def fetch_pages(self, request: PendingRequest) -> List[Any]:
        connection = request.connection
        url = connection.url_for(request.path)
        pages = []
        while url and len(pages) < connection.max_pages:
            resp = fetch_with_error_handling(self.session, url, connection)
            pages.append(_decode(resp, url))
            logger.record_page()
            url = resp.links.get("next", {}).get("url")
        if url:
            logger.warning("Page limit reached; remaining pages ignored",
                           path=redact(request.path), max_pages=connection.max_pages)
        return pages

    def send(self) -> List[ResponseTriple]:
        """Execute all pending requests and return one triple per request.

        Each request is removed from ``pending`` once executed.
        """
        triples = []
        while self.pending:
            request = self.pending[0]
            logger.debug("Fetching", path=redact(request.path), dest=request.dest)
            pages = self.fetch_pages(request)
            triples.append(ResponseTriple(dest=request.dest, pages=pages, task=request.task))
            self.pending.pop(0)
        return triples
