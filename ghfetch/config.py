"""
Job file loading.

A job file holds default ``options`` and a ``jobs`` object of named jobs;
each job's own options are deep-merged over the defaults. The access token
comes from the options or, failing that, from ``GITHUB_TOKEN``.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cache import CacheStore
from .context import Connection, JobContext, JobOptions, TaskOptions
from .env import token_from_env
from .errors import ConfigError
from .schema import validate_job_file
from .transport import RequestBatch
from .writer import WriteQueue

DEFAULT_JOB_FILE = "ghfetch.json"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_connection(raw: Dict[str, Any]) -> Connection:
    conn = Connection()
    for f in ("host", "protocol", "port", "user_agent"):
        if raw.get(f) is not None:
            setattr(conn, f, raw[f])
    if raw.get("timeout") is not None:
        conn.timeout = float(raw["timeout"])
    if raw.get("max_pages") is not None:
        conn.max_pages = int(raw["max_pages"])
    conn.headers = dict(raw.get("headers") or {})
    return conn


def build_options(name: str, raw: Dict[str, Any]) -> JobOptions:
    task = raw.get("task") or {}
    options = JobOptions(
        connection=build_connection(raw.get("connection") or {}),
        output=raw.get("output"),
        filters=dict(raw.get("filters") or {}),
        token=raw.get("token") or token_from_env(),
        task=TaskOptions(
            name=name,
            kind=task.get("type", "data"),
            cache=task.get("cache", True),
            partition=task.get("partition", True),
        ),
    )
    rate = raw.get("rate_limit") or {}
    if "warning" in rate:
        options.rate_limit_warning = rate["warning"]
    cache = raw.get("cache") or {}
    if cache.get("path"):
        options.cache_path = cache["path"]
    return options


@dataclass
class JobFile:
    path: Path
    defaults: Dict[str, Any]
    jobs: Dict[str, Dict[str, Any]]

    @property
    def names(self) -> List[str]:
        return list(self.jobs)

    def options_for(self, name: str) -> JobOptions:
        job = self._job(name)
        return build_options(name, deep_merge(self.defaults, job.get("options") or {}))

    def context_for(self, name: str, session=None) -> JobContext:
        """Build a fresh context, opening the job's cache store."""
        job = self._job(name)
        options = self.options_for(name)
        return JobContext(
            name=name,
            options=options,
            src=job.get("src"),
            dest=job.get("dest"),
            requests=RequestBatch(session=session),
            writes=WriteQueue(),
            cache=CacheStore(Path(options.cache_path)),
        )

    def _job(self, name: str) -> Dict[str, Any]:
        if name not in self.jobs:
            raise ConfigError(f"Unknown job: {name}. Known jobs: {', '.join(self.names)}")
        return self.jobs[name]


def parse_job_file(data: Dict[str, Any], path: Optional[Path] = None) -> JobFile:
    errors = validate_job_file(data)
    if errors:
        raise ConfigError("Invalid job file: " + "; ".join(errors), errors)
    return JobFile(
        path=Path(path or DEFAULT_JOB_FILE),
        defaults=data.get("options") or {},
        jobs=data["jobs"],
    )


def load_job_file(path: Path) -> JobFile:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Job file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Job file is not valid JSON: {path}: {e}") from e
    return parse_job_file(data, path)
