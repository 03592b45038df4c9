from __future__ import annotations

from datetime import datetime, time
from pathlib import Path
from typing import List, Optional, Tuple

from ar.artifacts import ArtifactStore
from ar.errors import GenerationError
from ar.scheduler import Scheduler

FRIDAY = 4


class FakeReview:
    def __init__(self, artifacts: ArtifactStore, fail: bool = False) -> None:
        self.artifacts = artifacts
        self.fail = fail
        self.runs: List[Tuple[datetime, Optional[str]]] = []

    def run_daily(self, now: datetime, date_key: Optional[str] = None):
        self.runs.append((now, date_key))
        if self.fail:
            raise GenerationError("boom")
        key = date_key or now.strftime("%Y-%m-%d")
        self.artifacts.write_daily(key, "review")


class FakeWeekly:
    def __init__(self) -> None:
        self.runs: List[datetime] = []

    def run(self, now: datetime) -> None:
        self.runs.append(now)


def _scheduler(
    tmp_path: Path,
    fail: bool = False,
    sleeps: Optional[List[float]] = None,
    tick_interval: float = 60,
    monotonic=lambda: 0.0,
):
    review = FakeReview(ArtifactStore(tmp_path), fail=fail)
    weekly = FakeWeekly()
    scheduler = Scheduler(
        review,
        weekly,
        daily_time=time(21, 0),
        weekly_weekday=FRIDAY,
        weekly_time=time(18, 0),
        settle_delay_seconds=10,
        tick_interval_seconds=tick_interval,
        sleep=(sleeps.append if sleeps is not None else (lambda _s: None)),
        monotonic=monotonic,
    )
    return scheduler, review, weekly


def test_daily_trigger_fires_once_per_day(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)

    assert scheduler.tick(datetime(2025, 1, 8, 20, 59, 30)) == []
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 5)) == ["daily"]
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 40)) == []
    assert scheduler.tick(datetime(2025, 1, 8, 21, 1, 0)) == []
    assert scheduler.tick(datetime(2025, 1, 9, 21, 0, 0)) == ["daily"]
    assert len(review.runs) == 2


def test_weekly_trigger_only_on_configured_day(tmp_path: Path) -> None:
    scheduler, _, weekly = _scheduler(tmp_path)

    assert scheduler.tick(datetime(2025, 1, 9, 18, 0, 10)) == []  # Thursday
    assert scheduler.tick(datetime(2025, 1, 10, 18, 0, 10)) == ["weekly"]
    assert scheduler.tick(datetime(2025, 1, 10, 18, 0, 50)) == []
    assert weekly.runs == [datetime(2025, 1, 10, 18, 0, 10)]


def test_failed_run_is_logged_not_raised(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path, fail=True)

    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 5)) == ["daily"]
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 30)) == []
    assert len(review.runs) == 1
    assert not scheduler.is_running


def test_trigger_is_skipped_while_another_run_holds_the_lock(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)

    scheduler._lock.acquire()
    try:
        assert scheduler.is_running
        assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 5)) == []
    finally:
        scheduler._lock.release()

    assert review.runs == []
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 30)) == ["daily"]


def test_catch_up_runs_today_when_time_has_passed(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)
    now = datetime(2025, 1, 8, 22, 15)

    assert scheduler.catch_up(now) == "2025-01-08"
    assert review.runs == [(now, "2025-01-08")]


def test_catch_up_runs_yesterday_before_todays_time(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)
    now = datetime(2025, 1, 8, 9, 0)

    assert scheduler.catch_up(now) == "2025-01-07"
    assert review.runs == [(now, "2025-01-07")]
    assert review.artifacts.daily_exists("2025-01-07")


def test_catch_up_does_nothing_when_reviews_exist(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)
    review.artifacts.write_daily("2025-01-07", "done")
    assert scheduler.catch_up(datetime(2025, 1, 8, 9, 0)) is None

    review.artifacts.write_daily("2025-01-08", "done")
    assert scheduler.catch_up(datetime(2025, 1, 8, 22, 0)) is None
    assert review.runs == []


def test_catch_up_at_exact_trigger_time_targets_yesterday(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)
    assert scheduler.catch_up(datetime(2025, 1, 8, 21, 0)) == "2025-01-07"


def test_next_run_times(tmp_path: Path) -> None:
    scheduler, _, _ = _scheduler(tmp_path)

    nxt = scheduler.next_run_times(datetime(2025, 1, 8, 22, 0))  # Wednesday evening
    assert nxt == {"daily": datetime(2025, 1, 9, 21, 0), "weekly": datetime(2025, 1, 10, 18, 0)}

    nxt = scheduler.next_run_times(datetime(2025, 1, 10, 19, 0))  # Friday after the weekly slot
    assert nxt["daily"] == datetime(2025, 1, 10, 21, 0)
    assert nxt["weekly"] == datetime(2025, 1, 17, 18, 0)


def test_start_settles_catches_up_then_ticks(tmp_path: Path) -> None:
    sleeps: List[float] = []
    scheduler, review, _ = _scheduler(tmp_path, sleeps=sleeps)
    clock_values = iter(
        [
            datetime(2025, 1, 8, 9, 0),
            datetime(2025, 1, 8, 20, 59, 50),
            datetime(2025, 1, 8, 21, 0, 50),
        ]
    )

    scheduler.start(clock=lambda: next(clock_values), max_ticks=2)

    assert sleeps == [10, 60, 60]
    assert [key for _, key in review.runs] == ["2025-01-07", None]


def test_catch_up_for_today_is_not_repeated_by_the_next_tick(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path, tick_interval=30)
    clock_values = iter([datetime(2025, 1, 8, 21, 0, 5), datetime(2025, 1, 8, 21, 0, 35)])

    scheduler.start(clock=lambda: next(clock_values), max_ticks=1)

    assert review.runs == [(datetime(2025, 1, 8, 21, 0, 5), "2025-01-08")]


def test_failed_catch_up_for_today_is_not_retried_by_the_next_tick(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path, fail=True)

    assert scheduler.catch_up(datetime(2025, 1, 8, 21, 0, 5)) is None
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 40)) == []
    assert len(review.runs) == 1


def test_catch_up_for_yesterday_leaves_todays_trigger_armed(tmp_path: Path) -> None:
    scheduler, review, _ = _scheduler(tmp_path)

    assert scheduler.catch_up(datetime(2025, 1, 8, 9, 0)) == "2025-01-07"
    assert scheduler.tick(datetime(2025, 1, 8, 21, 0, 10)) == ["daily"]
    assert [key for _, key in review.runs] == ["2025-01-07", None]


def test_start_keeps_a_fixed_tick_rate(tmp_path: Path) -> None:
    sleeps: List[float] = []
    # Each tick takes 25 seconds of monotonic time
    readings = iter([100.0, 125.0, 160.0, 185.0])
    scheduler, _, _ = _scheduler(tmp_path, sleeps=sleeps, monotonic=lambda: next(readings))
    clock_values = iter([datetime(2025, 1, 8, 9, 0), datetime(2025, 1, 8, 9, 1), datetime(2025, 1, 8, 9, 2)])

    scheduler.start(clock=lambda: next(clock_values), max_ticks=2)

    assert sleeps == [10, 60, 35.0]
