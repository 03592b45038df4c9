# src/ar/corpus.py
"""
Document corpus provider (deterministic).

Purpose:
- List the documents currently present in the vault and read their text.
- Keep paths in one canonical form (slash separated, vault relative, no
  leading/trailing slash) so snapshot keys are stable across platforms.

Design goals:
- The rest of the pipeline only sees the DocumentSource protocol, so tests can
  swap in an in-memory corpus.
- Hidden directories (.obsidian, .git, ...) and the tool's own output/data
  directories are never tracked: a review must not review itself.
- A file that vanished between listing and reading is NotFound (None); a file
  that exists but cannot be read raises DocumentReadError.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Protocol, Set, Tuple, runtime_checkable

from ar.errors import DocumentReadError

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".md",)


@runtime_checkable
class DocumentSource(Protocol):
    def list_documents(self) -> Set[str]:
        ...

    def read_text(self, path: str) -> Optional[str]:
        ...

    def last_modified_time(self, path: str) -> int:
        ...


def normalize_path(path: str) -> str:
    """
    Canonical document key.
    Example: "\\Notes\\./daily//a.md/" -> "Notes/daily/a.md"
    """
    p = path.replace("\\", "/").strip()
    while "//" in p:
        p = p.replace("//", "/")
    parts = [seg for seg in p.split("/") if seg not in ("", ".")]
    return "/".join(parts)


class VaultCorpus:
    """Markdown files under a vault directory."""

    def __init__(
        self,
        root: Path,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        exclude_dirs: Iterable[str] = (),
    ) -> None:
        self._root = root.expanduser().resolve()
        self._extensions = tuple(e.lower() for e in extensions)
        # Excluded directories are vault-relative prefixes, e.g. "reviews" or ".activity-review"
        self._exclude = tuple(normalize_path(d) for d in exclude_dirs if normalize_path(d))

    @property
    def root(self) -> Path:
        return self._root

    def _is_excluded(self, rel_dir: str) -> bool:
        return any(rel_dir == ex or rel_dir.startswith(ex + "/") for ex in self._exclude)

    def list_documents(self) -> Set[str]:
        found: Set[str] = set()
        if not self._root.is_dir():
            return found
        for dirpath, dirnames, filenames in os.walk(self._root):
            rel_dir = normalize_path(os.path.relpath(dirpath, self._root))
            # Prune in place so os.walk never descends into skipped trees
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".") and not self._is_excluded(normalize_path(f"{rel_dir}/{d}"))
            )
            for name in filenames:
                if name.startswith("."):
                    continue
                if not name.lower().endswith(self._extensions):
                    continue
                found.add(normalize_path(f"{rel_dir}/{name}"))
        return found

    def _full_path(self, path: str) -> Path:
        return self._root / normalize_path(path)

    def read_text(self, path: str) -> Optional[str]:
        full = self._full_path(path)
        try:
            # newline="" keeps line endings byte-exact, so hashes match the file content
            with full.open("r", encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(path, str(e)) from e

    def last_modified_time(self, path: str) -> int:
        try:
            return int(self._full_path(path).stat().st_mtime)
        except OSError:
            return 0
