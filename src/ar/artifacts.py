# src/ar/artifacts.py
"""
Review artifacts on disk.

- daily/<YYYY-MM-DD>.md          one per calendar day
- weekly/<isoYear>-W<isoWeek>.md  one per ISO week

Artifacts are only ever fully overwritten (a same-day re-run replaces the
day's review), and writes are atomic so "persisted" means durably on disk.
"""
from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import List, Optional

from ar.store import atomic_write_text

DAILY_DIR = "daily"
WEEKLY_DIR = "weekly"

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def date_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_date_key(key: str) -> Optional[date]:
    if not _DATE_KEY_RE.match(key):
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


class ArtifactStore:
    def __init__(self, reviews_dir: Path) -> None:
        self._root = reviews_dir

    @property
    def daily_dir(self) -> Path:
        return self._root / DAILY_DIR

    @property
    def weekly_dir(self) -> Path:
        return self._root / WEEKLY_DIR

    def daily_path(self, key: str) -> Path:
        return self.daily_dir / f"{key}.md"

    def weekly_path(self, week_key: str) -> Path:
        return self.weekly_dir / f"{week_key}.md"

    def write_daily(self, key: str, content: str) -> Path:
        path = self.daily_path(key)
        atomic_write_text(path, content)
        return path

    def write_weekly(self, week_key: str, content: str) -> Path:
        path = self.weekly_path(week_key)
        atomic_write_text(path, content)
        return path

    def daily_exists(self, key: str) -> bool:
        return self.daily_path(key).is_file()

    def read_daily(self, key: str) -> Optional[str]:
        try:
            return self.daily_path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def list_daily_dates(self) -> List[date]:
        """Dates of all daily artifacts, ascending. Files not named after a date are ignored."""
        if not self.daily_dir.is_dir():
            return []
        dates = []
        for p in self.daily_dir.glob("*.md"):
            d = parse_date_key(p.stem)
            if d is not None and p.is_file():
                dates.append(d)
        return sorted(dates)
