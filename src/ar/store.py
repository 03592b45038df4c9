# src/ar/store.py
"""
Snapshot persistence: content-addressed blob store + snapshot index.

Layout (under <data_dir>/snapshots/):
- <hash>.sn     one compressed document revision, stored as a JSON string
- index.json    the SnapshotIndex record (path -> hash, blob ref, mtime)

Design principles:
- Blobs are immutable once written; put() on an existing hash is a no-op.
- Every write is atomic (temp file in the same directory + os.replace), so a
  killed process leaves either the old file or the new one, never a torn one.
- Index serialization is deterministic so an unchanged index stays byte-identical.
- The store objects are plain handles passed to callers; there is no module state.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ar.errors import CorruptBlobError, CorruptIndexError
from ar.schema import BLOB_SUFFIX, SnapshotIndex

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path via a same-directory temp file and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", delete=False, dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    ) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class BlobStore:
    """Compressed document bodies keyed by content hash."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, content_hash: str) -> Path:
        return self._root / f"{content_hash}{BLOB_SUFFIX}"

    def exists(self, content_hash: str) -> bool:
        return self._path(content_hash).is_file()

    def put(self, content_hash: str, payload: str) -> bool:
        """Store payload under content_hash. Returns False when it was already present."""
        path = self._path(content_hash)
        if path.is_file():
            return False
        atomic_write_text(path, json.dumps(payload))
        return True

    def get(self, content_hash: str) -> Optional[str]:
        """
        Return the stored payload, or None when nothing is stored under this hash.
        Raises CorruptBlobError when the blob file exists but cannot be read as text.
        """
        path = self._path(content_hash)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptBlobError(f"Snapshot blob unreadable at {path}: {e}") from e
        # A blob file that is not a JSON string is handed back as-is; the codec
        # then reports it as CorruptBlobError for that one document.
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return raw
        return payload if isinstance(payload, str) else raw

    def delete(self, content_hash: str) -> None:
        self._path(content_hash).unlink(missing_ok=True)

    def hashes(self) -> List[str]:
        if not self._root.is_dir():
            return []
        return sorted(p.name[: -len(BLOB_SUFFIX)] for p in self._root.glob(f"*{BLOB_SUFFIX}") if p.is_file())

    def size_bytes(self) -> int:
        if not self._root.is_dir():
            return 0
        return sum(p.stat().st_size for p in self._root.glob(f"*{BLOB_SUFFIX}") if p.is_file())


class SnapshotIndexStore:
    """Loads and atomically saves the single SnapshotIndex record."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[SnapshotIndex]:
        """
        Returns None when no index exists (Empty).
        Raises CorruptIndexError when the record exists but cannot be read or validated.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptIndexError(f"Snapshot index unreadable at {self._path}: {e}") from e

        try:
            return SnapshotIndex.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptIndexError(f"Snapshot index invalid at {self._path}: {e}") from e

    def save(self, index: SnapshotIndex) -> None:
        payload = index.model_dump(mode="json")
        atomic_write_text(self._path, json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n")
        logger.info("Snapshot index saved: %d entries", len(index.entries))


# Mark-and-sweep over the blob store: anything not referenced from the index is an orphan.
def find_orphans(blobs: BlobStore, index: Optional[SnapshotIndex]) -> List[str]:
    referenced = index.referenced_hashes() if index is not None else set()
    return [h for h in blobs.hashes() if h not in referenced]


def sweep_orphans(blobs: BlobStore, index: Optional[SnapshotIndex]) -> List[str]:
    """Delete orphan blobs and return their hashes."""
    orphans = find_orphans(blobs, index)
    for h in orphans:
        blobs.delete(h)
    if orphans:
        logger.info("Removed %d orphan snapshot blobs", len(orphans))
    return orphans


@dataclass(frozen=True)
class SnapshotStats:
    tracked_documents: int
    blob_count: int
    blob_bytes: int
    orphan_count: int
    last_snapshot_time: Optional[str]
    index_status: str  # "empty" | "ready" | "corrupt"


def snapshot_stats(blobs: BlobStore, index_store: SnapshotIndexStore) -> SnapshotStats:
    try:
        index = index_store.load()
        status = "ready" if index is not None and index.entries else "empty"
    except CorruptIndexError:
        index = None
        status = "corrupt"
    hashes = blobs.hashes()
    referenced = index.referenced_hashes() if index is not None else set()
    return SnapshotStats(
        tracked_documents=len(index.entries) if index is not None else 0,
        blob_count=len(hashes),
        blob_bytes=blobs.size_bytes(),
        orphan_count=sum(1 for h in hashes if h not in referenced),
        last_snapshot_time=index.last_snapshot_time if index is not None else None,
        index_status=status,
    )
