# src/ar/schema.py
"""
Persisted and LLM-facing contracts (schema).

Purpose:
- Define the on-disk shape of the snapshot index so a damaged or foreign
  index.json is rejected at load time instead of silently mis-diffing.
- Define the text generator's output contract so free-form model output never
  reaches a review artifact unvalidated.

Design principles:
- Validation via Pydantic before any downstream use
- blob_ref is never named independently: it is always derived from content_hash
"""
from __future__ import annotations

from typing import Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

SNAPSHOT_SCHEMA_VERSION = 1
BLOB_SUFFIX = ".sn"


def blob_ref_for(content_hash: str) -> str:
    return f"{content_hash}{BLOB_SUFFIX}"


# One live entry per tracked document path.
class SnapshotEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Normalized vault-relative path: slash separated, no leading/trailing slash
    path: str = Field(..., min_length=1)

    # SHA-256 hex digest of the document text at snapshot time
    content_hash: str = Field(..., pattern=r"^[0-9a-f]{64}$")

    # Blob store key for the compressed text; always content_hash + BLOB_SUFFIX
    blob_ref: str

    # Document mtime observed when the snapshot was taken (integer seconds)
    observed_modified_time: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _blob_ref_follows_hash(self) -> "SnapshotEntry":
        if self.blob_ref != blob_ref_for(self.content_hash):
            raise ValueError(f"blob_ref {self.blob_ref!r} does not match content_hash for {self.path}")
        if self.path.startswith("/") or self.path.endswith("/"):
            raise ValueError(f"path is not normalized: {self.path!r}")
        return self

    @classmethod
    def create(cls, path: str, content_hash: str, modified_time: int) -> "SnapshotEntry":
        return cls(
            path=path,
            content_hash=content_hash,
            blob_ref=blob_ref_for(content_hash),
            observed_modified_time=max(0, int(modified_time)),
        )


# The whole index is read and rewritten as a single record on every mutating run.
class SnapshotIndex(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    last_snapshot_time: Optional[str] = None
    entries: Dict[str, SnapshotEntry] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _keys_match_paths(self) -> "SnapshotIndex":
        if self.schema_version != SNAPSHOT_SCHEMA_VERSION:
            raise ValueError(
                f"unsupported schema_version {self.schema_version} (expected {SNAPSHOT_SCHEMA_VERSION})"
            )
        for key, entry in self.entries.items():
            if key != entry.path:
                raise ValueError(f"entry key {key!r} does not match entry path {entry.path!r}")
        return self

    def referenced_hashes(self) -> Set[str]:
        return {e.content_hash for e in self.entries.values()}


# Output contract for the text generator.
# The model is instructed to answer {"text": "<markdown>"}; anything else is rejected.
class GeneratedReport(BaseModel):
    text: str = Field(..., min_length=1, description="Markdown report body.")
