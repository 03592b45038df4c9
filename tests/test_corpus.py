from __future__ import annotations

from pathlib import Path

import pytest

from ar.corpus import DocumentSource, VaultCorpus, normalize_path
from ar.errors import DocumentReadError


def _write(root: Path, rel: str, text: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_normalize_path() -> None:
    assert normalize_path("\\Notes\\./daily//a.md/") == "Notes/daily/a.md"
    assert normalize_path("a.md") == "a.md"
    assert normalize_path(".") == ""


def test_lists_markdown_and_skips_hidden_and_excluded(tmp_path: Path) -> None:
    _write(tmp_path, "root.md", "r")
    _write(tmp_path, "Projects/plan.md", "p")
    _write(tmp_path, "Projects/image.png", "x")
    _write(tmp_path, ".obsidian/workspace.md", "w")
    _write(tmp_path, "Projects/.draft.md", "d")
    _write(tmp_path, "reviews/daily/2025-01-01.md", "review")
    _write(tmp_path, ".activity-review/snapshots/x.md", "data")

    corpus = VaultCorpus(tmp_path, exclude_dirs=["reviews", ".activity-review"])

    assert isinstance(corpus, DocumentSource)
    assert corpus.list_documents() == {"root.md", "Projects/plan.md"}


def test_read_text_keeps_line_endings(tmp_path: Path) -> None:
    (tmp_path / "crlf.md").write_bytes(b"a\r\nb\r\n")
    assert VaultCorpus(tmp_path).read_text("crlf.md") == "a\r\nb\r\n"


def test_read_missing_document_is_none(tmp_path: Path) -> None:
    corpus = VaultCorpus(tmp_path)
    assert corpus.read_text("gone.md") is None
    assert corpus.last_modified_time("gone.md") == 0


def test_read_undecodable_document_raises(tmp_path: Path) -> None:
    (tmp_path / "binary.md").write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(DocumentReadError) as excinfo:
        VaultCorpus(tmp_path).read_text("binary.md")
    assert excinfo.value.path == "binary.md"


def test_missing_vault_lists_nothing(tmp_path: Path) -> None:
    assert VaultCorpus(tmp_path / "absent").list_documents() == set()
