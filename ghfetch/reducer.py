"""Reduce the pages fetched for one destination to the payload written."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .context import FILE_KIND
from .identity import digest
from .logger import get_logger

logger = get_logger()

IDENTITY_FIELDS = ("id", "sha", "node_id", "name")


def identity_key(item: Any) -> str:
    """Key an item by its own identity, falling back to its content digest."""
    if isinstance(item, dict):
        for field in IDENTITY_FIELDS:
            value = item.get(field)
            if value is not None and value != "":
                return str(value)
    return digest(item)


def merge_pages(pages: List[Any]) -> Dict[str, Any]:
    """
    Fold pages into one collection keyed by identity.

    A list page contributes each of its elements; any other page is an item
    itself. Keys are sorted so the result does not depend on arrival order.
    """
    collection: Dict[str, Any] = {}
    for page in pages:
        items = page if isinstance(page, list) else [page]
        for item in items:
            collection[identity_key(item)] = item
    return dict(sorted(collection.items()))


def reduce_pages(pages: List[Any], kind: str, dest: str = "") -> Optional[Any]:
    """Return the payload for ``dest``, or None when nothing should be written."""
    if not pages:
        logger.warning("No pages returned; nothing to write", dest=dest)
        return None
    if len(pages) == 1:
        return pages[0]
    if kind == FILE_KIND:
        logger.warning("Files can not be merged; skipping write", dest=dest, pages=len(pages))
        return None
    return merge_pages(pages)
