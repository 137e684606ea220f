"""Approval workflow for closed time entries: pending -> approved | rejected."""
from datetime import datetime

from timetracker.errors import InvalidStateError, ValidationError
from timetracker.models.time_entry import ApprovalStatus


def _check_pending(doc: dict) -> None:
    if doc.get("end_time") is None:
        raise InvalidStateError("Only stopped time entries can be approved or rejected")
    status = doc.get("status")
    if status != ApprovalStatus.PENDING.value:
        raise InvalidStateError(f"Time entry is already {status}")


def approve(doc: dict, actor_id: str, now: datetime) -> dict:
    """Return the update approving a pending entry."""
    _check_pending(doc)
    return {
        "status": ApprovalStatus.APPROVED.value,
        "approved_by": actor_id,
        "approved_at": now,
        "rejection_reason": None,
        "updated_at": now,
    }


def reject(doc: dict, actor_id: str, reason: str, now: datetime) -> dict:
    """Return the update rejecting a pending entry. ``reason`` is required."""
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required")
    _check_pending(doc)
    return {
        "status": ApprovalStatus.REJECTED.value,
        "approved_by": actor_id,
        "approved_at": now,
        "rejection_reason": reason.strip(),
        "updated_at": now,
    }
