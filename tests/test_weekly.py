from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from ar.artifacts import ArtifactStore, parse_date_key
from ar.errors import NoDailyReviewsError
from ar.weekly import WeeklyAggregator, iso_week_key, week_window

from conftest import RecordingGenerator


def test_iso_week_key_handles_year_boundaries() -> None:
    assert iso_week_key(date(2024, 12, 31)) == "2025-W01"
    assert iso_week_key(date(2021, 1, 1)) == "2020-W53"
    assert iso_week_key(date(2025, 3, 5)) == "2025-W10"


def test_week_window_is_monday_to_sunday() -> None:
    assert week_window(date(2025, 1, 8)) == (date(2025, 1, 6), date(2025, 1, 12))
    assert week_window(date(2025, 1, 6)) == (date(2025, 1, 6), date(2025, 1, 12))
    assert week_window(date(2025, 1, 12)) == (date(2025, 1, 6), date(2025, 1, 12))


def test_parse_date_key_ignores_foreign_names() -> None:
    assert parse_date_key("2025-01-06") == date(2025, 1, 6)
    assert parse_date_key("20250106") is None
    assert parse_date_key("2025-02-30") is None
    assert parse_date_key("notes") is None


def test_weekly_without_dailies_raises(tmp_path: Path) -> None:
    generator = RecordingGenerator()
    aggregator = WeeklyAggregator(ArtifactStore(tmp_path), generator)

    with pytest.raises(NoDailyReviewsError) as excinfo:
        aggregator.run(datetime(2025, 1, 10, 18, 0))

    assert str(excinfo.value) == "No daily reviews found for 2025-W02. Generate a daily review first."
    assert generator.calls == []
    assert not (tmp_path / "weekly").exists()


def test_weekly_uses_only_this_weeks_dailies_in_date_order(tmp_path: Path) -> None:
    artifacts = ArtifactStore(tmp_path)
    artifacts.write_daily("2025-01-05", "previous week")
    artifacts.write_daily("2025-01-09", "thursday work")
    artifacts.write_daily("2025-01-06", "monday work")
    artifacts.write_daily("2025-01-13", "next week")
    (artifacts.daily_dir / "scratch.md").write_text("ignored", encoding="utf-8")
    generator = RecordingGenerator(reply="# Weekly Review - 2025-W02\n")

    result = WeeklyAggregator(artifacts, generator).run(datetime(2025, 1, 10, 18, 0))

    assert result.week_key == "2025-W02"
    assert result.daily_dates == ["2025-01-06", "2025-01-09"]
    assert result.path == tmp_path / "weekly" / "2025-W02.md"
    assert result.path.read_text(encoding="utf-8") == "# Weekly Review - 2025-W02\n"

    op, prompt = generator.calls[0]
    assert op == "weekly_review"
    assert prompt.index("monday work") < prompt.index("thursday work")
    assert "previous week" not in prompt
    assert "next week" not in prompt
    assert "- Days with reviews: 2" in prompt


def test_weekly_rerun_overwrites(tmp_path: Path) -> None:
    artifacts = ArtifactStore(tmp_path)
    artifacts.write_daily("2025-01-07", "tuesday")
    now = datetime(2025, 1, 10, 18, 0)

    WeeklyAggregator(artifacts, RecordingGenerator(reply="first")).run(now)
    result = WeeklyAggregator(artifacts, RecordingGenerator(reply="second")).run(now)

    assert result.path.read_text(encoding="utf-8") == "second"
    assert sorted(p.name for p in artifacts.weekly_dir.iterdir()) == ["2025-W02.md"]
