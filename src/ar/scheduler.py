# src/ar/scheduler.py
"""
Periodic scheduling and missed-run catch-up.

The scheduler is a plain tick function that takes "now" as a parameter, so
trigger and catch-up logic is testable without waiting on the wall clock.
start() is the only place that sleeps.

Rules:
- daily trigger: within the minute starting at daily_trigger_time, once per date
- weekly trigger: same, on weekly_trigger_day at weekly_trigger_time
- runs never overlap: the snapshot store has no internal locking, so a trigger
  that arrives while a run is in progress is skipped
- catch-up (once per start, after a settle delay): if today's review is missing
  and its time has passed, run it; otherwise, if yesterday's review is missing,
  run one attributed to yesterday. Never further back.
"""
from __future__ import annotations

import logging
import threading
import time as _time
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional

from ar.artifacts import date_key
from ar.config import WEEKDAYS, ReviewConfig
from ar.errors import ReviewError
from ar.review import ReviewService
from ar.weekly import WeeklyAggregator

logger = logging.getLogger(__name__)

TRIGGER_WINDOW_SECONDS = 60

RUN_OK = "ok"
RUN_FAILED = "failed"
RUN_SKIPPED = "skipped"


class Scheduler:
    def __init__(
        self,
        review: ReviewService,
        weekly: WeeklyAggregator,
        daily_time: time,
        weekly_weekday: int,
        weekly_time: time,
        settle_delay_seconds: float = 10.0,
        tick_interval_seconds: float = 60.0,
        sleep: Callable[[float], None] = _time.sleep,
        monotonic: Callable[[], float] = _time.monotonic,
    ) -> None:
        self._review = review
        self._weekly = weekly
        self._daily_time = daily_time
        self._weekly_weekday = weekly_weekday
        self._weekly_time = weekly_time
        self._settle_delay = settle_delay_seconds
        self._tick_interval = tick_interval_seconds
        self._sleep = sleep
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._last_daily: Optional[date] = None
        self._last_weekly: Optional[date] = None

    @classmethod
    def from_config(
        cls,
        review: ReviewService,
        weekly: WeeklyAggregator,
        config: ReviewConfig,
        sleep: Callable[[float], None] = _time.sleep,
    ) -> "Scheduler":
        return cls(
            review,
            weekly,
            daily_time=config.daily_time,
            weekly_weekday=config.weekly_weekday,
            weekly_time=config.weekly_time,
            settle_delay_seconds=config.settle_delay_seconds,
            tick_interval_seconds=config.tick_interval_seconds,
            sleep=sleep,
        )

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _run_exclusive(self, name: str, fn: Callable[[], object]) -> str:
        if not self._lock.acquire(blocking=False):
            logger.info("Skipping %s: another review run is in progress", name)
            return RUN_SKIPPED
        try:
            fn()
            return RUN_OK
        except ReviewError as e:
            logger.error("%s failed: %s", name, e)
            return RUN_FAILED
        finally:
            self._lock.release()

    @staticmethod
    def _due(now: datetime, at: time) -> bool:
        scheduled = datetime.combine(now.date(), at, tzinfo=now.tzinfo)
        elapsed = (now - scheduled).total_seconds()
        return 0 <= elapsed < TRIGGER_WINDOW_SECONDS

    def tick(self, now: datetime) -> List[str]:
        """Check triggers for this instant. Returns the names of the runs started."""
        fired: List[str] = []
        today = now.date()

        if self._last_daily != today and self._due(now, self._daily_time):
            logger.info("Triggering daily review")
            if self._run_exclusive("daily review", lambda: self._review.run_daily(now)) != RUN_SKIPPED:
                self._last_daily = today
                fired.append("daily")

        if (
            now.weekday() == self._weekly_weekday
            and self._last_weekly != today
            and self._due(now, self._weekly_time)
        ):
            logger.info("Triggering weekly review")
            if self._run_exclusive("weekly review", lambda: self._weekly.run(now)) != RUN_SKIPPED:
                self._last_weekly = today
                fired.append("weekly")

        return fired

    def catch_up(self, now: datetime) -> Optional[str]:
        """Run at most one missed daily review. Returns the date key it was attributed to."""
        artifacts = self._review.artifacts
        today_key = date_key(now.date())
        if artifacts.daily_exists(today_key):
            return None

        scheduled = datetime.combine(now.date(), self._daily_time, tzinfo=now.tzinfo)
        if now > scheduled:
            target = today_key
            logger.info("Running missed daily review for today (%s)", target)
        else:
            target = date_key(now.date() - timedelta(days=1))
            if artifacts.daily_exists(target):
                return None
            logger.info("Running missed daily review for yesterday (%s)", target)

        result = self._run_exclusive("catch-up review", lambda: self._review.run_daily(now, date_key=target))
        if target == today_key and result != RUN_SKIPPED:
            # Consumes today's daily trigger
            self._last_daily = now.date()
        return target if result == RUN_OK else None

    def next_run_times(self, now: datetime) -> Dict[str, datetime]:
        daily = datetime.combine(now.date(), self._daily_time, tzinfo=now.tzinfo)
        if now > daily:
            daily += timedelta(days=1)

        weekly = datetime.combine(now.date(), self._weekly_time, tzinfo=now.tzinfo)
        while weekly.weekday() != self._weekly_weekday or weekly < now:
            weekly += timedelta(days=1)

        return {"daily": daily, "weekly": weekly}

    def start(self, clock: Callable[[], datetime] = datetime.now, max_ticks: Optional[int] = None) -> None:
        """
        Settle, catch up, then tick every tick_interval_seconds (forever unless max_ticks is set).
        Ticks are fixed-rate: time spent inside a tick is subtracted from the following sleep.
        """
        logger.info(
            "Scheduler starting: daily at %s, weekly on %s at %s",
            self._daily_time.strftime("%H:%M"),
            WEEKDAYS[self._weekly_weekday],
            self._weekly_time.strftime("%H:%M"),
        )
        self._sleep(self._settle_delay)
        self.catch_up(clock())

        ticks = 0
        delay = self._tick_interval
        while max_ticks is None or ticks < max_ticks:
            self._sleep(delay)
            started = self._monotonic()
            self.tick(clock())
            ticks += 1
            delay = self._tick_interval - (self._monotonic() - started) % self._tick_interval
