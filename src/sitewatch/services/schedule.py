"""Next-run calculation and missed-run detection for watch tasks.

Both functions are pure: they read the task and the supplied ``now`` and
never touch storage. ``scheduled_time`` is interpreted in ``tz``; results are
returned in UTC.

Every frequency uses the same boundary rule: a candidate equal to ``now``
belongs to the next cycle, so the returned time is always strictly after
``now``.
"""

from datetime import datetime, timedelta, timezone, tzinfo

from sitewatch.models.watch_task import DayOfWeek, Frequency, WatchTask


def parse_scheduled_time(value: str) -> tuple[int, int]:
    """Parse an ``HH:MM`` string into (hour, minute).

    Raises:
        ValueError: If the value is not a valid 24-hour time.
    """
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid scheduled time {value!r}, expected HH:MM") from None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid scheduled time {value!r}, expected HH:MM")
    return hour, minute


def _sunday_index(moment: datetime) -> int:
    # datetime.weekday() is Monday = 0
    return (moment.weekday() + 1) % 7


def next_run(task: WatchTask, now: datetime, tz: tzinfo | None = None) -> datetime:
    """Compute the next time ``task`` should run after ``now``.

    Args:
        task: The task to schedule
        now: Current time (timezone-aware)
        tz: Zone that ``scheduled_time`` is expressed in (defaults to system local)

    Returns:
        A UTC timestamp strictly after ``now``
    """
    hour, minute = parse_scheduled_time(task.scheduled_time)
    local_now = now.astimezone(tz)

    if task.frequency == Frequency.HOURLY:
        # Hourly tasks fire at minute MM of every hour; stepping in UTC keeps
        # the repeated hour when clocks go back
        candidate = local_now.replace(minute=minute, second=0, microsecond=0)
        candidate = candidate.astimezone(timezone.utc)
        now_utc = now.astimezone(timezone.utc)
        while candidate <= now_utc:
            candidate += timedelta(hours=1)
        return candidate

    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)

    if task.frequency == Frequency.DAILY:
        if candidate <= local_now:
            candidate += timedelta(days=1)
    elif task.frequency == Frequency.WEEKLY:
        target = (task.day_of_week or DayOfWeek.MON).index
        days_to_add = (target - _sunday_index(local_now) + 7) % 7
        if days_to_add == 0 and candidate <= local_now:
            days_to_add = 7
        candidate += timedelta(days=days_to_add)

    return _resolve_wall_time(candidate, tz).astimezone(timezone.utc)


def _resolve_wall_time(candidate: datetime, tz: tzinfo | None) -> datetime:
    """Re-attach a zone so day arithmetic keeps the wall-clock time across DST."""
    if tz is None:
        # Fixed offset from astimezone(); recompute it for the target date
        return candidate.replace(tzinfo=None).astimezone()
    return candidate.replace(tzinfo=tz)


def is_missed(task: WatchTask, now: datetime) -> bool:
    """Report whether at least one full cycle has passed since the last run.

    A task that has never run is not considered missed.
    """
    if task.last_run is None:
        return False
    return now - task.last_run > task.frequency.interval
