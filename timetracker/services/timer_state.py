"""Timer state machine over time entry documents.

A user's timer is Idle (no open entry), Running (open, not paused) or
Paused (open, ``paused_at`` set). Each transition function checks the
source state and returns the ``$set`` document that moves the entry to the
target state; persisting it is the caller's job.
"""
from datetime import datetime
from typing import Optional

from timetracker.errors import ConflictError, InvalidStateError, InvalidTaskStateError
from timetracker.models.time_entry import ApprovalStatus, TimerState
from timetracker.services.accounting import active_seconds, paused_gap_seconds


def state_of(doc: Optional[dict]) -> TimerState:
    """Derive the timer state from a time entry document (or its absence)."""
    if doc is None or doc.get("end_time") is not None:
        return TimerState.IDLE
    if doc.get("paused_at") is not None:
        return TimerState.PAUSED
    return TimerState.RUNNING


def check_can_start(
    active: Optional[dict],
    task: dict,
    required_status: str,
) -> None:
    """
    Check that a new timer may be started for ``task``.

    Args:
        active: The user's open entry, if any
        task: Task document the timer would track
        required_status: The only task status that permits tracking

    Raises:
        InvalidTaskStateError: If the task is not in the required status
        ConflictError: If another task's timer is still open
        InvalidStateError: If this task's timer is already open
    """
    if task.get("status") != required_status:
        raise InvalidTaskStateError(
            f"Task must be {required_status.replace('_', ' ')} to start a timer"
        )

    if state_of(active) is TimerState.IDLE:
        return

    if active["task_id"] != str(task["_id"]):
        raise ConflictError(
            "Another timer is active for a different task. Stop it first."
        )
    raise InvalidStateError("Timer already running for this task")


def pause(doc: dict, now: datetime) -> dict:
    """Running -> Paused."""
    state = state_of(doc)
    if state is TimerState.PAUSED:
        raise InvalidStateError("Timer is already paused")
    if state is TimerState.IDLE:
        raise InvalidStateError("No active timer")

    return {"paused_at": now, "updated_at": now}


def resume(doc: dict, now: datetime) -> dict:
    """Paused -> Running, folding the pause into ``paused_seconds``."""
    state = state_of(doc)
    if state is TimerState.RUNNING:
        raise InvalidStateError("Timer is not paused")
    if state is TimerState.IDLE:
        raise InvalidStateError("No active timer")

    return {
        "paused_at": None,
        "paused_seconds": doc.get("paused_seconds", 0)
        + paused_gap_seconds(doc["paused_at"], now),
        "updated_at": now,
    }


def stop(doc: dict, now: datetime) -> dict:
    """Running|Paused -> Idle. Settles the entry's duration."""
    if state_of(doc) is TimerState.IDLE:
        raise InvalidStateError("Timer is already stopped")

    paused_seconds = doc.get("paused_seconds", 0) + paused_gap_seconds(
        doc.get("paused_at"), now
    )
    duration = active_seconds(doc["start_time"], now, paused_seconds) // 60

    return {
        "end_time": now,
        "paused_at": None,
        "paused_seconds": paused_seconds,
        "duration_minutes": duration,
        "status": ApprovalStatus.PENDING.value,
        "is_open": False,
        "updated_at": now,
    }


def expected_state_filter(state: Optional[TimerState] = None) -> dict:
    """Mongo filter matching an open entry, optionally in a specific state."""
    query = {"is_open": True}
    if state is TimerState.RUNNING:
        query["paused_at"] = None
    elif state is TimerState.PAUSED:
        query["paused_at"] = {"$ne": None}
    return query
