# src/ar/detect.py
"""
Change detection against the snapshot index (deterministic).

Algorithm:
1. For every document currently present: hash its text.
   - no index entry            -> added
   - entry with another hash   -> modified (old hash kept for diffing)
   - entry with the same hash  -> unchanged
2. Every indexed path absent from the current set -> deleted.
3. Renames are never inferred: a move shows up as one deletion plus one addition.

Failure policy:
- A document that cannot be read is skipped, logged, and counted in
  ChangeSet.unreadable. One bad file must not abort detection for the corpus.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ar.codec import content_hash
from ar.corpus import DocumentSource, normalize_path
from ar.errors import DocumentReadError
from ar.schema import SnapshotIndex

logger = logging.getLogger(__name__)

ADDED = "added"
MODIFIED = "modified"
DELETED = "deleted"


@dataclass
class FileChange:
    path: str
    kind: str  # "added" | "modified" | "deleted"
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None
    diff_text: Optional[str] = None
    # True when the previous snapshot blob was missing or corrupt, so no diff could be computed
    diff_unavailable: bool = False
    # Current text and mtime, kept so the snapshot can be taken without re-reading the file
    text: Optional[str] = field(default=None, repr=False)
    modified_time: int = 0


@dataclass
class ChangeSet:
    added: List[FileChange] = field(default_factory=list)
    modified: List[FileChange] = field(default_factory=list)
    deleted: List[FileChange] = field(default_factory=list)
    unreadable: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    @property
    def summary(self) -> str:
        return (
            f"added={len(self.added)}, "
            f"modified={len(self.modified)}, "
            f"deleted={len(self.deleted)}, "
            f"unreadable={len(self.unreadable)}"
        )


def detect_changes(source: DocumentSource, index: SnapshotIndex) -> ChangeSet:
    result = ChangeSet()
    present: Set[str] = set()

    for path in sorted(normalize_path(p) for p in source.list_documents()):
        try:
            text = source.read_text(path)
        except DocumentReadError as e:
            # Still present on disk: must not be reported as deleted
            present.add(path)
            result.unreadable.append(path)
            logger.warning("Skipping unreadable document %s: %s", path, e.reason)
            continue

        if text is None:
            # Vanished between listing and reading; treat as absent
            logger.info("Document disappeared during scan: %s", path)
            continue

        present.add(path)
        new_hash = content_hash(text)
        entry = index.entries.get(path)

        if entry is None:
            result.added.append(
                FileChange(
                    path=path,
                    kind=ADDED,
                    new_hash=new_hash,
                    text=text,
                    modified_time=source.last_modified_time(path),
                )
            )
        elif entry.content_hash != new_hash:
            result.modified.append(
                FileChange(
                    path=path,
                    kind=MODIFIED,
                    old_hash=entry.content_hash,
                    new_hash=new_hash,
                    text=text,
                    modified_time=source.last_modified_time(path),
                )
            )

    for path in sorted(index.entries):
        if path not in present:
            result.deleted.append(
                FileChange(path=path, kind=DELETED, old_hash=index.entries[path].content_hash)
            )

    logger.info("Changes detected: %s", result.summary)
    return result
