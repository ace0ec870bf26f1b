"""Watch task model for recurring website checks."""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


class Frequency(str, enum.Enum):
    """How often a watch task runs."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta:
        """Nominal length of one scheduling cycle."""
        return _INTERVALS[self]


_INTERVALS = {
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(days=7),
}


class DayOfWeek(str, enum.Enum):
    """Target weekday for weekly tasks."""

    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @property
    def index(self) -> int:
        """Weekday index with Sunday = 0."""
        return _DAY_INDEX[self]


_DAY_INDEX = {
    DayOfWeek.SUN: 0,
    DayOfWeek.MON: 1,
    DayOfWeek.TUE: 2,
    DayOfWeek.WED: 3,
    DayOfWeek.THU: 4,
    DayOfWeek.FRI: 5,
    DayOfWeek.SAT: 6,
}


@dataclass
class RunResult:
    """Outcome of one execution, always replaced as a whole."""

    result: str
    timestamp: datetime
    matched: bool | None = None
    screenshot: str | None = None  # Path of the stored snapshot image

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "result": self.result,
            "timestamp": self.timestamp.isoformat(),
        }
        # Error outcomes carry no matched flag at all
        if self.matched is not None:
            data["matched"] = self.matched
        if self.screenshot is not None:
            data["screenshot"] = self.screenshot
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunResult":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            result=data.get("result", ""),
            timestamp=timestamp,
            matched=data.get("matched"),
            screenshot=data.get("screenshot"),
        )


@dataclass
class WatchTask:
    """A recurring check of a web page against a natural-language condition."""

    task_id: str
    website_url: str
    notification_criteria: str
    analysis_prompt: str
    frequency: Frequency
    scheduled_time: str  # "HH:MM" local wall-clock time
    day_of_week: DayOfWeek | None = None
    is_running: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_run: datetime | None = None
    next_scheduled_run: datetime | None = None
    last_result: str | None = None
    last_matched_criteria: bool | None = None
    last_test_result: RunResult | None = None
