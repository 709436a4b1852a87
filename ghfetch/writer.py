"""
Write-back of fetched payloads.

``write_payload`` is the storage side of a job: it turns a payload into
bytes according to its kind and replaces the destination atomically.
``WriteQueue`` collects the writes a run decided on and applies them in
order once every response has been processed.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import tempfile
from pathlib import Path
from typing import Any, List

from .context import FILE_KIND, WriteItem
from .errors import StorageError
from .logger import get_logger

logger = get_logger()


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a temporary file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_ghfetch_")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.debug("Unable to remove temp file", path=tmp_path)


def _file_bytes(payload: Any) -> bytes:
    if not isinstance(payload, dict) or "content" not in payload:
        raise StorageError("File payload has no 'content' field")
    content = payload["content"] or ""
    if payload.get("encoding") == "base64":
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"File content is not valid base64: {e}") from e
    return content.encode("utf-8")


def encode_payload(payload: Any, dest: str, kind: str):
    """Return ``(path, bytes)`` for a payload of the given kind."""
    path = Path(dest)
    if kind == FILE_KIND:
        return path, _file_bytes(payload)
    if isinstance(payload, bytes):
        return path, payload
    if isinstance(payload, str):
        return path, payload.encode("utf-8")
    if not path.suffix:
        path = path.with_name(path.name + ".json")
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    return path, text.encode("utf-8")


def write_payload(payload: Any, dest: str, kind: str) -> Path:
    """
    Durably write one payload.

    Args:
        payload: Page, merged collection or pre-serialized text
        dest: Destination path
        kind: "file" decodes the page's content; anything else is written
            verbatim when already text and as pretty JSON otherwise

    Returns:
        The path actually written

    Raises:
        StorageError: when the destination cannot be written
    """
    path, data = encode_payload(payload, dest, kind)
    try:
        atomic_write(path, data)
    except OSError as e:
        logger.error("Write failed", path=str(path), error=str(e))
        raise StorageError(f"Unable to write {path}: {e}", path=str(path)) from e
    logger.debug("Wrote payload", path=str(path), bytes=len(data))
    return path


class WriteQueue:
    """Pending writes applied in insertion order by :meth:`flush`."""

    def __init__(self):
        self._items: List[WriteItem] = []

    def add(self, payload: Any, dest: str, kind: str) -> None:
        self._items.append(WriteItem(payload=payload, dest=dest, kind=kind))

    @property
    def items(self) -> List[WriteItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def flush(self) -> List[Path]:
        """Write every pending item, then clear the queue.

        An item is removed once written, so a failure leaves only the
        unwritten items queued.
        """
        written = []
        while self._items:
            item = self._items[0]
            written.append(write_payload(item.payload, item.dest, item.kind))
            logger.record_write()
            self._items.pop(0)
        return written
