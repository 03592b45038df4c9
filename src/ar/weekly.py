# src/ar/weekly.py
"""
Weekly review aggregation over ISO-8601 weeks.

Week numbering follows ISO: week 1 is the week containing the year's first
Thursday, weeks run Monday..Sunday, and the ISO year can differ from the
calendar year at the edges (2024-12-31 is 2025-W01, 2021-01-01 is 2020-W53).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Tuple

from ar.artifacts import ArtifactStore, date_key
from ar.errors import NoDailyReviewsError
from ar.llm import TextGenerator
from ar.prompts import build_weekly_prompt

logger = logging.getLogger(__name__)


def iso_week_key(d: date) -> str:
    iso_year, iso_week, _ = d.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def week_window(d: date) -> Tuple[date, date]:
    """Monday and Sunday of the ISO week containing d."""
    monday = d - timedelta(days=d.isoweekday() - 1)
    return monday, monday + timedelta(days=6)


@dataclass
class WeeklyArtifact:
    week_key: str
    path: Path
    daily_dates: List[str] = field(default_factory=list)


class WeeklyAggregator:
    def __init__(self, artifacts: ArtifactStore, generator: TextGenerator) -> None:
        self._artifacts = artifacts
        self._generator = generator

    def collect(self, now: datetime) -> List[Tuple[str, str]]:
        """(date, content) of every daily review inside now's ISO week, in date order."""
        start, end = week_window(now.date())
        result: List[Tuple[str, str]] = []
        for d in self._artifacts.list_daily_dates():
            if not (start <= d <= end):
                continue
            key = date_key(d)
            content = self._artifacts.read_daily(key)
            if content is not None:
                result.append((key, content))
        return result

    def run(self, now: datetime) -> WeeklyArtifact:
        week_key = iso_week_key(now.date())
        dailies = self.collect(now)
        if not dailies:
            raise NoDailyReviewsError(week_key)

        logger.info("Generating weekly review %s from %d daily reviews", week_key, len(dailies))
        report = self._generator.generate(build_weekly_prompt(dailies, week_key), operation="weekly_review")
        path = self._artifacts.write_weekly(week_key, report)
        logger.info("Weekly review saved to %s", path)
        return WeeklyArtifact(week_key=week_key, path=path, daily_dates=[d for d, _ in dailies])
