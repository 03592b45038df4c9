# src/ar/diffing.py
"""
Bounded line diff between two document revisions.

Output format (context-free):
- removed lines are emitted as "- <line>"
- added lines are emitted as "+ <line>"
- unchanged runs are omitted entirely

Budget:
- lines are counted as they are emitted; once max_lines lines are out and more
  would follow, a single TRUNCATION_MARKER line is appended and diffing stops.
- identical inputs produce the empty string, which callers treat as "no real change".
"""
from __future__ import annotations

from difflib import SequenceMatcher
from typing import Iterator, List

DEFAULT_MAX_DIFF_LINES = 100
TRUNCATION_MARKER = "... (differences exceed maximum line limit)"


def _iter_changed_lines(old_lines: List[str], new_lines: List[str]) -> Iterator[str]:
    # autojunk off: the popularity heuristic would treat repeated lines
    # (blank lines, list markers) as junk and produce non-minimal diffs.
    matcher = SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag in ("delete", "replace"):
            for line in old_lines[i1:i2]:
                yield f"- {line}"
        if tag in ("insert", "replace"):
            for line in new_lines[j1:j2]:
                yield f"+ {line}"


def diff_lines(old_text: str, new_text: str, max_lines: int = DEFAULT_MAX_DIFF_LINES) -> str:
    """
    Return the changed lines between old_text and new_text, newline-joined.

    At most max_lines content lines are returned; if the diff is longer,
    TRUNCATION_MARKER follows them as the last line.
    """
    if max_lines < 0:
        raise ValueError(f"max_lines must be >= 0, got {max_lines}")
    if old_text == new_text:
        return ""

    out: List[str] = []
    for line in _iter_changed_lines(old_text.splitlines(), new_text.splitlines()):
        if len(out) >= max_lines:
            out.append(TRUNCATION_MARKER)
            break
        out.append(line)
    return "\n".join(out)
