"""
Job context and the records that flow between pipeline stages.

A ``JobContext`` is built once per job from the job file, handed to every
stage by reference and dropped when the job reports back. Stages document
which fields they read and write; nothing else carries state between them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from . import __version__

FILE_KIND = "file"
DATA_KIND = "data"
SHARED_PARTITION = "default"


@dataclass
class Connection:
    """Where and how requests are sent."""

    host: str = "api.github.com"
    protocol: str = "https"
    port: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 20.0
    user_agent: str = f"ghfetch/{__version__}"
    max_pages: int = 100

    @property
    def base_url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.protocol}://{netloc}"

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
        }
        headers.update(self.headers)
        return headers


@dataclass
class TaskOptions:
    """Per-job behavior flags that travel with every request."""

    name: str
    kind: str = DATA_KIND
    cache: bool = True
    partition: bool = True

    @property
    def cache_name(self) -> str:
        """Cache partition for this task's entries."""
        return self.name if self.partition else SHARED_PARTITION


@dataclass
class JobOptions:
    connection: Connection = field(default_factory=Connection)
    output: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    token: Optional[str] = None
    rate_limit_warning: int = 10
    cache_path: str = ".ghfetch-cache.json"
    task: TaskOptions = field(default_factory=lambda: TaskOptions(name=SHARED_PARTITION))

    @property
    def authenticated(self) -> bool:
        return bool(self.token)


@dataclass
class PendingRequest:
    connection: Connection
    path: str
    dest: Union[str, bool]
    task: Optional[TaskOptions]


@dataclass
class ResponseTriple:
    """Destination, ordered payload pages and the task that asked for them."""

    dest: Union[str, bool]
    pages: List[Any]
    task: Optional[TaskOptions]


@dataclass
class WriteItem:
    payload: Any
    dest: str
    kind: str


@dataclass
class JobContext:
    """State threaded through every stage of one job.

    ``requests`` is the RequestBatch holding pending requests, ``writes`` the
    WriteQueue and ``cache`` the CacheStore for ``options.cache_path``.
    """

    name: str
    options: JobOptions
    src: Union[str, List[str], None] = None
    dest: Optional[str] = None
    requests: Any = None
    writes: Any = None
    cache: Any = None
    skipped: bool = False

    @property
    def sources(self) -> List[str]:
        if self.src is None:
            return []
        if isinstance(self.src, str):
            return [self.src]
        return list(self.src)

    @property
    def request_count(self) -> int:
        """Number of requests this job spends against the rate limit."""
        return len(self.sources)
