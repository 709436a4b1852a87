"""Content identifiers used to tell whether a fetched payload changed."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, List, Pattern, Tuple

from .context import FILE_KIND

# Upstream fields that rotate between requests without any content change.
VOLATILE_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"https://\d\.gravatar"), "https://gravatar"),
    (re.compile(r"https://avatars\d\.githubusercontent\.com"), "https://avatars.githubusercontent.com"),
]


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def normalize_volatile(text: str) -> str:
    for pattern, replacement in VOLATILE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def digest(payload: Any) -> str:
    """SHA-256 of the canonical, volatile-free serialization of ``payload``."""
    text = normalize_volatile(canonical_json(payload))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_id(payload: Any, kind: str) -> str:
    """Return the identifier stored in the cache for ``payload``.

    File resources already carry a git blob ``sha``; it is used as is.
    Everything else is digested.
    """
    if kind == FILE_KIND and isinstance(payload, dict) and payload.get("sha"):
        return str(payload["sha"])
    return digest(payload)
