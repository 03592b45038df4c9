# src/ar/errors.py
"""
Error taxonomy for the review pipeline.

Each condition maps to a different recovery path in the state machine:
- CorruptIndexError: index unreadable -> forced rebuild (history lost, run continues)
- CorruptBlobError: one prior snapshot unreadable -> that file's diff is omitted
- DocumentReadError: one document unreadable -> skipped and counted
- NoDailyReviewsError: weekly precondition unmet -> user-actionable abort
- GenerationError: text generator failed -> run aborts before any index/blob write

"Empty" (no prior state) is not an error: SnapshotIndexStore.load() returns None.
"""
from __future__ import annotations


class ReviewError(RuntimeError):
    pass


class CorruptIndexError(ReviewError):
    pass


class CorruptBlobError(ReviewError):
    pass


class DocumentReadError(ReviewError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read document {path}: {reason}")
        self.path = path
        self.reason = reason


class NoDailyReviewsError(ReviewError):
    def __init__(self, week_key: str) -> None:
        super().__init__(
            f"No daily reviews found for {week_key}. Generate a daily review first."
        )
        self.week_key = week_key


class GenerationError(ReviewError):
    pass
