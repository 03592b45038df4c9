# src/ar/overview.py
"""
Repository overview statistics for the first (bootstrap) run.

There is no previous snapshot to diff against on the first run, so the daily
artifact describes the vault instead: how many documents, folders, tags and
links it holds, and how documents are spread over top-level folders.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Set

ROOT_FOLDER = "(root)"

# "#tag" or "#nested/tag", but not headings ("# Title"), anchors in links or "##"
INLINE_TAG_RE = re.compile(r"(?<![\w#/&(])#([A-Za-z_][\w/-]*)")
FRONT_MATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?(?:\n|\Z)", re.DOTALL)
FENCE_RE = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)
WIKILINK_RE = re.compile(r"(?<!!)\[\[[^\]\n]+\]\]")
MD_LINK_RE = re.compile(r"(?<!!)\[[^\]\n]*\]\([^)\s]+(?:\s+\"[^\"]*\")?\)")

# Thresholds for the size band reported in the overview prompt
SMALL_VAULT_MAX = 100
MEDIUM_VAULT_MAX = 1000


@dataclass
class RepositoryOverview:
    total_documents: int = 0
    total_folders: int = 0
    total_tags: int = 0
    total_links: int = 0
    folders: Dict[str, int] = field(default_factory=dict)

    @property
    def size_band(self) -> str:
        if self.total_documents <= SMALL_VAULT_MAX:
            return "small"
        if self.total_documents <= MEDIUM_VAULT_MAX:
            return "medium"
        return "large"


def top_level_folder(path: str) -> str:
    return path.split("/", 1)[0] if "/" in path else ROOT_FOLDER


def _front_matter_tags(block: str) -> Set[str]:
    tags: Set[str] = set()
    lines = block.splitlines()
    for i, line in enumerate(lines):
        m = re.match(r"^tags\s*:\s*(.*)$", line.strip(), re.IGNORECASE)
        if not m:
            continue
        inline = m.group(1).strip()
        if inline:
            # tags: [a, b]  or  tags: a, b
            for t in inline.strip("[]").split(","):
                t = t.strip().strip("'\"").lstrip("#")
                if t:
                    tags.add(t)
        else:
            # YAML list on following lines
            for follow in lines[i + 1:]:
                item = re.match(r"^\s*-\s*(.+)$", follow)
                if not item:
                    break
                t = item.group(1).strip().strip("'\"").lstrip("#")
                if t:
                    tags.add(t)
        break
    return tags


def extract_tags(text: str) -> Set[str]:
    tags: Set[str] = set()
    body = text
    fm = FRONT_MATTER_RE.match(text)
    if fm:
        tags |= _front_matter_tags(fm.group(1))
        body = text[fm.end():]
    body = FENCE_RE.sub("", body)
    tags |= {m.group(1) for m in INLINE_TAG_RE.finditer(body)}
    return tags


def count_links(text: str) -> int:
    body = FENCE_RE.sub("", text)
    return len(WIKILINK_RE.findall(body)) + len(MD_LINK_RE.findall(body))


def collect_overview(documents: Mapping[str, str]) -> RepositoryOverview:
    overview = RepositoryOverview(total_documents=len(documents))
    all_tags: Set[str] = set()
    for path in sorted(documents):
        text = documents[path]
        folder = top_level_folder(path)
        overview.folders[folder] = overview.folders.get(folder, 0) + 1
        all_tags |= extract_tags(text)
        overview.total_links += count_links(text)
    overview.total_folders = sum(1 for f in overview.folders if f != ROOT_FOLDER)
    overview.total_tags = len(all_tags)
    return overview
