# src/ar/config.py
"""
Runtime configuration.

Sources, later wins:
1. defaults below
2. .env file (python-dotenv) and process environment, as AR_<FIELD_NAME>
3. explicit overrides (CLI flags)

API credentials for the text generator stay in API_KEY / BASE_URL and are read
by ar.llm, never stored on this model.
"""
from __future__ import annotations

import os
from datetime import time
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ar.diffing import DEFAULT_MAX_DIFF_LINES
from ar.llm import DEFAULT_MAX_RETRIES, DEFAULT_MODEL, DEFAULT_TEMPERATURE, DEFAULT_TIMEOUT_SECONDS
from ar.store import INDEX_FILENAME

ENV_PREFIX = "AR_"
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_hhmm(value: str) -> time:
    """'21:00' -> time(21, 0). Raises ValueError on anything else."""
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"expected HH:MM, got {value!r}")
    return time(int(parts[0]), int(parts[1]))


class ReviewConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vault_dir: Path = Path(".")
    # Relative paths are resolved against vault_dir
    reviews_dir: str = "reviews"
    data_dir: str = ".activity-review"

    max_diff_lines: int = Field(DEFAULT_MAX_DIFF_LINES, ge=0)
    max_files_for_detail: Optional[int] = Field(50, ge=1)

    daily_trigger_time: str = "21:00"
    weekly_trigger_day: str = "friday"
    weekly_trigger_time: str = "18:00"
    settle_delay_seconds: float = Field(10.0, ge=0)
    tick_interval_seconds: float = Field(60.0, gt=0)

    # Mark-and-sweep unreferenced snapshot blobs after each index save
    gc_orphans: bool = False

    model: str = DEFAULT_MODEL
    temperature: float = Field(DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    llm_timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    llm_max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)

    @field_validator("daily_trigger_time", "weekly_trigger_time")
    @classmethod
    def _valid_hhmm(cls, v: str) -> str:
        t = parse_hhmm(v)
        return t.strftime("%H:%M")

    @field_validator("weekly_trigger_day")
    @classmethod
    def _valid_weekday(cls, v: str) -> str:
        day = v.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"weekly_trigger_day must be one of {', '.join(WEEKDAYS)}")
        return day

    @property
    def daily_time(self) -> time:
        return parse_hhmm(self.daily_trigger_time)

    @property
    def weekly_time(self) -> time:
        return parse_hhmm(self.weekly_trigger_time)

    @property
    def weekly_weekday(self) -> int:
        """Monday == 0, as datetime.weekday()."""
        return WEEKDAYS.index(self.weekly_trigger_day)

    def _under_vault(self, p: str) -> Path:
        path = Path(p).expanduser()
        return path if path.is_absolute() else self.vault_dir / path

    @property
    def reviews_path(self) -> Path:
        return self._under_vault(self.reviews_dir)

    @property
    def data_path(self) -> Path:
        return self._under_vault(self.data_dir)

    @property
    def snapshots_path(self) -> Path:
        return self.data_path / "snapshots"

    @property
    def index_path(self) -> Path:
        return self.snapshots_path / INDEX_FILENAME


def load_config(env_file: Optional[Path] = None, use_dotenv: bool = True, **overrides: Any) -> ReviewConfig:
    """
    Build the config from AR_* environment variables (optionally loaded from .env)
    plus non-None overrides. Raises pydantic.ValidationError on invalid values.
    """
    if use_dotenv:
        load_dotenv(dotenv_path=env_file)

    values: dict = {}
    for name in ReviewConfig.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ReviewConfig.model_validate(values)
