# src/ar/render.py
"""
Review renderer (deterministic).

Purpose:
- Turn a ChangeSet / RepositoryOverview into the Markdown blocks used both in
  prompts and as the appendix of a review.
- Produce the "no changes" sentinel artifact without any LLM involvement.

Design choices:
- No I/O, no network calls: same input, same Markdown.
- Modified files whose previous snapshot could not be read stay listed, with an
  explicit note instead of a diff, so the reader knows the diff was omitted.
"""
from __future__ import annotations

from typing import List, Optional

from ar.detect import ChangeSet
from ar.overview import RepositoryOverview

NO_CHANGES_MARKER = "_No changes detected._"


def render_change_summary(changes: ChangeSet) -> str:
    sections: List[str] = []

    def block(title: str, paths: List[str]) -> None:
        if not paths:
            return
        if sections:
            sections.append("")
        sections.append(f"### {title} ({len(paths)})")
        sections.extend(f"- {p}" for p in paths)

    block("Added", [c.path for c in changes.added])
    block("Modified", [c.path for c in changes.modified])
    block("Deleted", [c.path for c in changes.deleted])
    return "\n".join(sections)


def render_change_details(changes: ChangeSet, max_files: Optional[int] = None) -> str:
    """
    Per-file diff blocks for modified files.
    max_files caps how many files get a detail block; the rest are counted.
    """
    if not changes.modified:
        return ""
    detailed = changes.modified if max_files is None else changes.modified[:max_files]
    lines: List[str] = ["## Change details"]
    for change in detailed:
        lines.append("")
        lines.append(f"### {change.path}")
        if change.diff_unavailable:
            lines.append("_Previous snapshot unavailable; diff omitted._")
        elif not change.diff_text:
            lines.append("_Whitespace or line-ending changes only._")
        else:
            lines.append("```diff")
            lines.append(change.diff_text)
            lines.append("```")
    omitted = len(changes.modified) - len(detailed)
    if omitted > 0:
        lines.append("")
        lines.append(f"_{omitted} more modified file(s) without details._")
    return "\n".join(lines)


def render_counts(changes: ChangeSet) -> str:
    return "\n".join(
        [
            f"- Changed files: {changes.total}",
            f"- Added: {len(changes.added)}",
            f"- Modified: {len(changes.modified)}",
            f"- Deleted: {len(changes.deleted)}",
        ]
    )


def render_no_changes(date_key: str, unreadable: int = 0) -> str:
    lines = [f"# Daily Review - {date_key}", "", NO_CHANGES_MARKER]
    if unreadable:
        lines.append("")
        lines.append(f"_{unreadable} document(s) could not be read and were skipped._")
    return "\n".join(lines) + "\n"


def render_folder_listing(overview: RepositoryOverview) -> str:
    return "\n".join(f"- {folder}: {count} document(s)" for folder, count in sorted(overview.folders.items()))


def render_overview_stats(overview: RepositoryOverview) -> str:
    return "\n".join(
        [
            f"- Documents: {overview.total_documents}",
            f"- Folders: {overview.total_folders}",
            f"- Tags: {overview.total_tags}",
            f"- Links: {overview.total_links}",
        ]
    )
