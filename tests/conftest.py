from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from ar.artifacts import ArtifactStore
from ar.corpus import normalize_path
from ar.errors import DocumentReadError, GenerationError
from ar.review import ReviewService
from ar.store import BlobStore, SnapshotIndexStore


class DictCorpus:
    """In-memory DocumentSource. Paths listed in `broken` raise DocumentReadError on read."""

    def __init__(self, documents: Optional[Dict[str, str]] = None) -> None:
        self.documents: Dict[str, str] = dict(documents or {})
        self.mtimes: Dict[str, int] = {}
        self.broken: Set[str] = set()

    def list_documents(self) -> Set[str]:
        return set(self.documents) | set(self.broken)

    def read_text(self, path: str) -> Optional[str]:
        if path in self.broken:
            raise DocumentReadError(path, "permission denied")
        for key, text in self.documents.items():
            if normalize_path(key) == path:
                return text
        return None

    def last_modified_time(self, path: str) -> int:
        return self.mtimes.get(path, 1_700_000_000)


class RecordingGenerator:
    def __init__(self, reply: str = "# Review\n\ngenerated\n") -> None:
        self.reply = reply
        self.calls: List[Tuple[str, str]] = []

    def generate(self, prompt: str, operation: str = "review") -> str:
        self.calls.append((operation, prompt))
        return self.reply


class FailingGenerator:
    def __init__(self) -> None:
        self.calls = 0

    def generate(self, prompt: str, operation: str = "review") -> str:
        self.calls += 1
        raise GenerationError("model unavailable")


class Workspace:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.corpus = DictCorpus()
        self.generator = RecordingGenerator()
        self.blobs = BlobStore(root / "data" / "snapshots")
        self.index_store = SnapshotIndexStore(root / "data" / "snapshots" / "index.json")
        self.artifacts = ArtifactStore(root / "reviews")

    def service(self, generator=None, **kwargs) -> ReviewService:
        return ReviewService(
            source=self.corpus,
            blobs=self.blobs,
            index_store=self.index_store,
            artifacts=self.artifacts,
            generator=generator or self.generator,
            **kwargs,
        )

    def store_files(self) -> Dict[str, bytes]:
        base = self.blobs.root
        if not base.is_dir():
            return {}
        return {p.name: p.read_bytes() for p in sorted(base.iterdir())}


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)
