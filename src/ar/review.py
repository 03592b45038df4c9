# src/ar/review.py
"""
Daily review state machine.

States:
- UNINITIALIZED: snapshot index absent, empty or corrupt
- BOOTSTRAPPING: first run, building the baseline snapshot
- READY: steady state, re-entered on every scheduled run

Run ordering (the invariant everything else relies on):
1. detect changes / read documents           (no writes)
2. generate the report via the text generator (may fail -> GenerationError, nothing written)
3. persist the daily artifact                 (overwrites the same date)
4. write new blobs                            (content addressed, idempotent)
5. save the snapshot index                    (last)

An interrupted run can therefore leave an orphan blob, never an index entry
pointing at a missing blob. A run with no changes writes the "no changes"
artifact and leaves blobs and index untouched, so repeated runs are no-ops.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ar.artifacts import ArtifactStore, date_key as format_date_key
from ar.codec import compress, content_hash, decompress
from ar.corpus import DocumentSource, normalize_path
from ar.detect import ChangeSet, detect_changes
from ar.diffing import DEFAULT_MAX_DIFF_LINES, diff_lines
from ar.errors import CorruptBlobError, CorruptIndexError, DocumentReadError
from ar.llm import TextGenerator
from ar.overview import collect_overview
from ar.prompts import build_daily_prompt, build_overview_prompt
from ar.render import render_no_changes
from ar.schema import SnapshotEntry, SnapshotIndex
from ar.store import BlobStore, SnapshotIndexStore, sweep_orphans

logger = logging.getLogger(__name__)

OUTCOME_BOOTSTRAP = "bootstrap"
OUTCOME_NO_CHANGES = "no_changes"
OUTCOME_REVIEW = "review"


class ReviewState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"


@dataclass
class ReviewOutcome:
    kind: str  # "bootstrap" | "no_changes" | "review"
    date_key: str
    artifact_path: Path
    changes: Optional[ChangeSet] = None
    unreadable: int = 0
    tracked_documents: int = 0


def _timestamp(now: datetime) -> str:
    return now.isoformat(timespec="seconds")


class ReviewService:
    def __init__(
        self,
        source: DocumentSource,
        blobs: BlobStore,
        index_store: SnapshotIndexStore,
        artifacts: ArtifactStore,
        generator: TextGenerator,
        max_diff_lines: int = DEFAULT_MAX_DIFF_LINES,
        max_files_for_detail: Optional[int] = None,
        gc_orphans: bool = False,
    ) -> None:
        self._source = source
        self._blobs = blobs
        self._index_store = index_store
        self._artifacts = artifacts
        self._generator = generator
        self._max_diff_lines = max_diff_lines
        self._max_files_for_detail = max_files_for_detail
        self._gc_orphans = gc_orphans
        self.state = ReviewState.UNINITIALIZED

    @property
    def artifacts(self) -> ArtifactStore:
        return self._artifacts

    def _load_index(self) -> Optional[SnapshotIndex]:
        try:
            return self._index_store.load()
        except CorruptIndexError as e:
            # Availability over exactness: drop history, rebuild the baseline, keep reviewing
            logger.warning("Snapshot index is corrupt, rebuilding from scratch: %s", e)
            return None

    def current_state(self) -> ReviewState:
        if self.state is ReviewState.BOOTSTRAPPING:
            return self.state
        index = self._load_index()
        self.state = ReviewState.READY if index is not None and index.entries else ReviewState.UNINITIALIZED
        return self.state

    def run_daily(
        self,
        now: datetime,
        date_key: Optional[str] = None,
        max_diff_lines: Optional[int] = None,
    ) -> ReviewOutcome:
        """
        Run one review for date_key (default: now's date).

        Raises GenerationError if the text generator fails; in that case neither
        the artifact nor the snapshot store has been modified.
        """
        key = date_key or format_date_key(now.date())
        max_lines = self._max_diff_lines if max_diff_lines is None else max_diff_lines

        index = self._load_index()
        if index is None or not index.entries:
            return self._bootstrap(now, key)

        self.state = ReviewState.READY
        return self._incremental(now, key, index, max_lines)

    # ---------- bootstrap ----------

    def _bootstrap(self, now: datetime, key: str) -> ReviewOutcome:
        logger.info("First run: creating repository overview and initial snapshots")
        self.state = ReviewState.BOOTSTRAPPING
        try:
            documents, unreadable = self._read_all_documents()

            overview = collect_overview(documents)
            report = self._generator.generate(
                build_overview_prompt(overview, key),
                operation="repository_overview",
            )
            artifact_path = self._artifacts.write_daily(key, report)

            index = SnapshotIndex(last_snapshot_time=_timestamp(now))
            for path, text in documents.items():
                h = content_hash(text)
                self._blobs.put(h, compress(text))
                index.entries[path] = SnapshotEntry.create(path, h, self._source.last_modified_time(path))
            self._index_store.save(index)
            if self._gc_orphans:
                sweep_orphans(self._blobs, index)
        except Exception:
            self.state = ReviewState.UNINITIALIZED
            raise

        self.state = ReviewState.READY
        logger.info("Created %d initial snapshots, overview saved to %s", len(index.entries), artifact_path)
        return ReviewOutcome(
            kind=OUTCOME_BOOTSTRAP,
            date_key=key,
            artifact_path=artifact_path,
            unreadable=len(unreadable),
            tracked_documents=len(index.entries),
        )

    def _read_all_documents(self) -> Tuple[Dict[str, str], List[str]]:
        documents: Dict[str, str] = {}
        unreadable: List[str] = []
        for path in sorted(normalize_path(p) for p in self._source.list_documents()):
            try:
                text = self._source.read_text(path)
            except DocumentReadError as e:
                unreadable.append(path)
                logger.warning("Skipping unreadable document %s: %s", path, e.reason)
                continue
            if text is not None:
                documents[path] = text
        return documents, unreadable

    # ---------- incremental ----------

    def _incremental(self, now: datetime, key: str, index: SnapshotIndex, max_lines: int) -> ReviewOutcome:
        changes = detect_changes(self._source, index)

        if changes.is_empty:
            logger.info("No changes detected, writing sentinel review for %s", key)
            artifact_path = self._artifacts.write_daily(key, render_no_changes(key, len(changes.unreadable)))
            return ReviewOutcome(
                kind=OUTCOME_NO_CHANGES,
                date_key=key,
                artifact_path=artifact_path,
                changes=changes,
                unreadable=len(changes.unreadable),
                tracked_documents=len(index.entries),
            )

        self._attach_diffs(changes, max_lines)

        logger.info("Calling text generator for daily review %s", key)
        report = self._generator.generate(
            build_daily_prompt(changes, key, max_files_for_detail=self._max_files_for_detail),
            operation="daily_review",
        )
        artifact_path = self._artifacts.write_daily(key, report)

        self._apply_changes(index, changes, now)
        logger.info("Daily review saved to %s (%s)", artifact_path, changes.summary)
        return ReviewOutcome(
            kind=OUTCOME_REVIEW,
            date_key=key,
            artifact_path=artifact_path,
            changes=changes,
            unreadable=len(changes.unreadable),
            tracked_documents=len(index.entries),
        )

    def _read_previous(self, old_hash: str) -> Optional[str]:
        try:
            payload = self._blobs.get(old_hash)
            if payload is None:
                logger.warning("Previous snapshot %s is missing", old_hash)
                return None
            return decompress(payload)
        except CorruptBlobError as e:
            logger.warning("Previous snapshot %s is corrupt: %s", old_hash, e)
            return None

    def _attach_diffs(self, changes: ChangeSet, max_lines: int) -> None:
        for change in changes.modified:
            old_text = self._read_previous(change.old_hash) if change.old_hash else None
            if old_text is None or change.text is None:
                change.diff_unavailable = True
                continue
            change.diff_text = diff_lines(old_text, change.text, max_lines)

    def _apply_changes(self, index: SnapshotIndex, changes: ChangeSet, now: datetime) -> None:
        updated = changes.added + changes.modified

        # Blobs first: an index entry must never point at a blob that was not written
        for change in updated:
            self._blobs.put(change.new_hash, compress(change.text or ""))

        for change in updated:
            index.entries[change.path] = SnapshotEntry.create(change.path, change.new_hash, change.modified_time)
        for change in changes.deleted:
            index.entries.pop(change.path, None)
        index.last_snapshot_time = _timestamp(now)

        self._index_store.save(index)

        if self._gc_orphans:
            sweep_orphans(self._blobs, index)
