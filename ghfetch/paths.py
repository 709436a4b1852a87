import posixpath
import re
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TOKEN_PARAM = "access_token"
_TOKEN_IN_TEXT = re.compile(rf"({TOKEN_PARAM}=)[^&\s'\")]+")


def clean_path(path: str) -> str:
    """Trim whitespace and surrounding slashes from a source or destination."""
    return path.strip().strip("/")


def destination_for(src: str, dest: Optional[str], output: Optional[str]) -> str:
    """
    Resolve where the payload for ``src`` is written.

    dest: configured destination, used as given; defaults to the cleaned
    source path.
    output: optional output directory prefixed to the destination.
    """
    resolved = clean_path(dest) if dest else clean_path(src)
    if output:
        resolved = f"{output.strip().rstrip('/')}/{resolved}"
    return resolved


def query_string(filters: Optional[Dict[str, Any]], token: Optional[str]) -> str:
    params = []
    for key, value in (filters or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        params.append((key, value))
    if token:
        params.append((TOKEN_PARAM, token))
    return urlencode(params)


def request_path(src: str, filters: Optional[Dict[str, Any]], token: Optional[str]) -> str:
    path = clean_path(src)
    if filters or token:
        path += "?" + query_string(filters, token)
    return path


def cache_key(dest: str) -> str:
    """Destination with the extension stripped from its final component."""
    head, tail = posixpath.split(dest)
    stem = tail.split(".")[0]
    return posixpath.join(head, stem) if head else stem


def has_ambiguous_key(dest: str) -> bool:
    """True when more than one dot is dropped from ``dest`` by ``cache_key``."""
    tail = posixpath.basename(dest)
    return tail.count(".") > 1


def redact(url: str) -> str:
    """Hide the access token of a URL before it is logged."""
    parsed = urlparse(url)
    if TOKEN_PARAM not in parsed.query:
        return url
    params = [
        (k, "***" if k == TOKEN_PARAM else v)
        for k, v in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    return urlunparse(parsed._replace(query=urlencode(params, safe="*")))


def redact_text(text: str) -> str:
    """Hide every access token value found anywhere in ``text``."""
    return _TOKEN_IN_TEXT.sub(r"\1***", text)
