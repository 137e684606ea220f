"""Time entry model definitions."""
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TimerState(str, Enum):
    """States of a user's timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class ApprovalStatus(str, Enum):
    """Approval workflow states of a closed time entry."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TimeEntryBase(BaseModel):
    """Base time entry fields."""

    task_id: str
    project_id: Optional[str] = None
    note: str = ""
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    paused_at: Optional[datetime] = None
    paused_seconds: int = 0
    status: Optional[ApprovalStatus] = None
    is_manual: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class ActiveTimer(TimeEntry):
    """The user's open time entry as reported by the service."""

    state: TimerState
    is_paused: bool
    current_duration: int  # active seconds at response time
    elapsed_minutes: int


class TimerStart(BaseModel):
    """Request model for starting a timer."""

    task_id: str
    note: Optional[str] = None


class TimerCommand(BaseModel):
    """Request model for pause/resume/stop."""

    timer_id: str


class ManualEntryCreate(BaseModel):
    """Manual time entry creation model.

    ``start_time`` and ``end_time`` are wall-clock times on ``date``.
    """

    task_id: str
    date: date
    start_time: time
    end_time: time
    note: Optional[str] = None


class TimeEntryUpdate(BaseModel):
    """Time entry update model. Timestamps and durations are not editable."""

    note: Optional[str] = None


class ApproveRequest(BaseModel):
    """Request model for approving a time entry."""

    time_log_id: str


class RejectRequest(BaseModel):
    """Request model for rejecting a time entry."""

    time_log_id: str
    rejection_reason: str


class TimeEntryFilters(BaseModel):
    """Filters for listing time entries."""

    user_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[ApprovalStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class TimesheetSummary(BaseModel):
    """Time entries with their totals."""

    time_logs: list[TimeEntry]
    total_minutes: int
    total_hours: float
    total_logs: int


class LongRunningTimers(BaseModel):
    """Open timers that have been running longer than the threshold."""

    long_running_timers: list[ActiveTimer]
    count: int
