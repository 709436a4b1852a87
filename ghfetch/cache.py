"""Persistent content-identifier cache keyed by task name and destination."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from .context import DATA_KIND
from .logger import get_logger
from .writer import write_payload

logger = get_logger()

CACHE_FORMAT_VERSION = 1


@dataclass
class CacheEntry:
    """Last seen content identifier for one destination of one task."""

    task: str
    key: str
    kind: str
    content_id: str


class CacheStore:
    """Track content identifiers between runs.

    Entries are keyed by ``(task, key)`` where ``key`` is the destination
    without its extension. The store is side-effect free until
    :meth:`flush_if_dirty`; every :meth:`set` marks it dirty and a successful
    flush marks it clean again, so flushing twice writes at most once.
    """

    def __init__(self, location: Path):
        self.location = Path(location)
        self._entries: Dict[Tuple[str, str], CacheEntry] = {}
        self._dirty = False
        self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, task: str, key: str) -> Optional[CacheEntry]:
        return self._entries.get((task, key))

    def set(self, task: str, key: str, kind: str, content_id: str) -> CacheEntry:
        """Create or overwrite the entry for ``(task, key)``."""
        entry = CacheEntry(task=task, key=key, kind=kind, content_id=content_id)
        self._entries[(task, key)] = entry
        self._dirty = True
        return entry

    @property
    def dirty(self) -> bool:
        return self._dirty

    def entries(self, task: Optional[str] = None) -> Iterator[CacheEntry]:
        for (name, _), entry in sorted(self._entries.items()):
            if task is None or name == task:
                yield entry

    def __len__(self) -> int:
        return len(self._entries)

    def dump(self) -> Tuple[str, Path]:
        """Return the serialized record set and where it belongs."""
        records = [asdict(entry) for entry in self.entries()]
        contents = json.dumps(
            {"version": CACHE_FORMAT_VERSION, "entries": records},
            indent=2,
            sort_keys=True,
        )
        return contents + "\n", self.location

    def saved(self) -> None:
        self._dirty = False

    def flush_if_dirty(self) -> bool:
        """Persist the record set when something changed. Returns True if written."""
        if not self._dirty:
            return False
        contents, location = self.dump()
        write_payload(contents, str(location), DATA_KIND)
        self.saved()
        logger.info("Updated cache", path=str(location), entries=len(self))
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if not self.location.exists():
            return

        try:
            raw = json.loads(self.location.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Cache file is corrupted; starting fresh", path=str(self.location))
            return
        except OSError as exc:
            logger.warning("Unable to read cache file", path=str(self.location), error=str(exc))
            return

        records = raw.get("entries", []) if isinstance(raw, dict) else []
        for record in records:
            if not isinstance(record, dict):
                continue
            values = [record.get(f) for f in ("task", "key", "kind", "content_id")]
            if not all(isinstance(v, str) for v in values):
                continue
            entry = CacheEntry(*values)
            self._entries[(entry.task, entry.key)] = entry
