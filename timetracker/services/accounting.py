"""Time accounting for time entries.

Active time is wall time since ``start_time`` minus every pause. Closed
entries carry a settled ``duration_minutes`` that is returned as-is and
never recomputed from timestamps.
"""
from datetime import date, datetime, time
from typing import Optional

from timetracker.errors import ValidationError


def paused_gap_seconds(paused_at: Optional[datetime], now: datetime) -> int:
    """Seconds spent in the ongoing pause, 0 if not paused."""
    if paused_at is None:
        return 0
    return max(0, int((now - paused_at).total_seconds()))


def active_seconds(
    start_time: datetime,
    now: datetime,
    paused_seconds: int = 0,
    paused_at: Optional[datetime] = None,
) -> int:
    """
    Calculate tracked seconds of an open entry at ``now``.

    Args:
        start_time: When the timer was started
        now: Instant to evaluate at
        paused_seconds: Accumulated seconds of completed pauses
        paused_at: Start of the ongoing pause, if paused

    Returns:
        Active seconds, clamped to 0 on clock skew
    """
    elapsed = (now - start_time).total_seconds()
    active = elapsed - paused_seconds - paused_gap_seconds(paused_at, now)
    return max(0, int(active))


def active_minutes(
    start_time: datetime,
    now: datetime,
    paused_seconds: int = 0,
    paused_at: Optional[datetime] = None,
) -> int:
    """Whole tracked minutes of an open entry at ``now``."""
    return active_seconds(start_time, now, paused_seconds, paused_at) // 60


def entry_active_seconds(doc: dict, now: datetime) -> int:
    """Active seconds of a time entry document at ``now``."""
    if doc.get("end_time") is not None:
        return (doc.get("duration_minutes") or 0) * 60
    return active_seconds(
        doc["start_time"],
        now,
        doc.get("paused_seconds", 0),
        doc.get("paused_at"),
    )


def entry_active_minutes(doc: dict, now: datetime) -> int:
    """
    Tracked minutes of a time entry document.

    Settled entries return their persisted duration so later clock
    differences cannot alter them.
    """
    if doc.get("end_time") is not None:
        return doc.get("duration_minutes") or 0
    return entry_active_seconds(doc, now) // 60


def manual_window(entry_date: date, start_clock: time, end_clock: time) -> tuple[datetime, datetime]:
    """
    Resolve a manual entry's wall-clock times on ``entry_date``.

    Raises:
        ValidationError: If the end is not after the start
    """
    start = datetime.combine(entry_date, start_clock)
    end = datetime.combine(entry_date, end_clock)
    if end <= start:
        raise ValidationError("End time must be after start time")
    return start, end


def manual_duration_minutes(entry_date: date, start_clock: time, end_clock: time) -> int:
    """
    Duration in minutes of a manual entry.

    Raises:
        ValidationError: If the computed duration is not positive
    """
    start, end = manual_window(entry_date, start_clock, end_clock)
    minutes = int((end - start).total_seconds() // 60)
    if minutes <= 0:
        raise ValidationError("Time entry duration must be at least one minute")
    return minutes


def format_duration(seconds: int) -> str:
    """Format seconds as ``HH:MM:SS``."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
