"""Timer endpoints - time tracking operations.

Service errors (conflicts, invalid states, validation) propagate as
``TimeTrackingError`` and are rendered by the handler registered in
``timetracker.main``.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from timetracker.database import get_database
from timetracker.models.time_entry import (
    ActiveTimer,
    ApprovalStatus,
    ApproveRequest,
    LongRunningTimers,
    ManualEntryCreate,
    RejectRequest,
    TimeEntry,
    TimeEntryFilters,
    TimeEntryUpdate,
    TimerCommand,
    TimerStart,
    TimesheetSummary,
)
from timetracker.models.user import APPROVER_ROLES, User
from timetracker.routers.auth import (
    get_current_user,
    get_current_user_id,
    require_admin,
    require_approver,
)
from timetracker.services.timer_service import TimerService


router = APIRouter(prefix="/time", tags=["time"])


class ActiveTimerResponse(BaseModel):
    """Envelope for the active timer; ``data`` is null when idle."""

    data: Optional[ActiveTimer] = None


async def get_timer_service(db=Depends(get_database)) -> TimerService:
    """Dependency building a TimerService on the request's database."""
    return TimerService(db)


def _scoped_filters(user: User, filters: TimeEntryFilters) -> TimeEntryFilters:
    """Employees only ever see their own entries."""
    if user.role.value in APPROVER_ROLES:
        return filters
    return filters.model_copy(update={"user_id": user.id})


@router.get("/active", response_model=ActiveTimerResponse)
async def get_active_timer(
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """
    Get the current user's open timer.

    - Includes ``is_paused`` and the authoritative ``current_duration``
    - ``data`` is null when no timer is open
    """
    return ActiveTimerResponse(data=await service.get_active_timer(user_id=user_id))


@router.post("/start", response_model=TimeEntry)
async def start_timer(
    timer_start: TimerStart,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """
    Start a timer for a task.

    - Task must be in progress
    - Only one open timer per user
    """
    return await service.start_timer(
        user_id=user_id,
        task_id=timer_start.task_id,
        note=timer_start.note,
    )


@router.post("/pause", response_model=TimeEntry)
async def pause_timer(
    command: TimerCommand,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """Pause a running timer."""
    return await service.pause_timer(user_id=user_id, timer_id=command.timer_id)


@router.post("/resume", response_model=TimeEntry)
async def resume_timer(
    command: TimerCommand,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """Resume a paused timer."""
    return await service.resume_timer(user_id=user_id, timer_id=command.timer_id)


@router.post("/stop", response_model=TimeEntry)
async def stop_timer(
    command: TimerCommand,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """
    Stop a running or paused timer.

    - Settles the duration and puts the entry up for approval
    """
    return await service.stop_timer(user_id=user_id, timer_id=command.timer_id)


@router.post("/manual", response_model=TimeEntry)
async def create_manual_entry(
    entry_create: ManualEntryCreate,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """
    Create a closed time entry from a date and wall-clock times.

    - End time must be after start time
    - Entry starts out pending approval
    """
    return await service.create_manual_entry(user_id=user_id, entry_create=entry_create)


@router.post("/approve", response_model=TimeEntry)
async def approve_entry(
    request: ApproveRequest,
    approver: User = Depends(require_approver),
    service: TimerService = Depends(get_timer_service),
):
    """Approve a pending time entry. Managers and admins only."""
    return await service.approve_entry(actor_id=approver.id, entry_id=request.time_log_id)


@router.post("/reject", response_model=TimeEntry)
async def reject_entry(
    request: RejectRequest,
    approver: User = Depends(require_approver),
    service: TimerService = Depends(get_timer_service),
):
    """Reject a pending time entry with a reason. Managers and admins only."""
    return await service.reject_entry(
        actor_id=approver.id,
        entry_id=request.time_log_id,
        reason=request.rejection_reason,
    )


@router.get("/entries", response_model=list[TimeEntry])
async def list_entries(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    task_id: Optional[str] = Query(None),
    status: Optional[ApprovalStatus] = Query(None),
    user: User = Depends(get_current_user),
    service: TimerService = Depends(get_timer_service),
):
    """
    List time entries, most recent first.

    - Employees see their own entries only
    - Managers and admins may filter by ``user_id``
    """
    filters = TimeEntryFilters(
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return await service.list_entries(_scoped_filters(user, filters))


@router.get("/timesheet", response_model=TimesheetSummary)
async def get_timesheet(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    task_id: Optional[str] = Query(None),
    status: Optional[ApprovalStatus] = Query(None),
    user: User = Depends(get_current_user),
    service: TimerService = Depends(get_timer_service),
):
    """Time entries with total minutes, hours and count."""
    filters = TimeEntryFilters(
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return await service.timesheet(_scoped_filters(user, filters))


@router.get("/task/{task_id}", response_model=TimesheetSummary)
async def get_task_time_logs(
    task_id: str,
    user: User = Depends(get_current_user),
    service: TimerService = Depends(get_timer_service),
):
    """Time entries and totals for one task."""
    return await service.timesheet(_scoped_filters(user, TimeEntryFilters(task_id=task_id)))


@router.get("/long-running", response_model=LongRunningTimers)
async def get_long_running_timers(
    hours: Optional[int] = Query(None, ge=1),
    approver: User = Depends(require_approver),
    service: TimerService = Depends(get_timer_service),
):
    """Open timers running longer than ``hours`` (default from settings)."""
    return await service.long_running_timers(threshold_hours=hours)


@router.get("/entries/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    user: User = Depends(get_current_user),
    service: TimerService = Depends(get_timer_service),
):
    """Get a time entry. Employees can only read their own."""
    owner = None if user.role.value in APPROVER_ROLES else user.id
    return await service.get_entry(entry_id, user_id=owner)


@router.patch("/entries/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    user_id: str = Depends(get_current_user_id),
    service: TimerService = Depends(get_timer_service),
):
    """Update the note of one of your time entries."""
    return await service.update_entry(
        user_id=user_id,
        entry_id=entry_id,
        entry_update=entry_update,
    )


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    admin: User = Depends(require_admin),
    service: TimerService = Depends(get_timer_service),
):
    """Delete a time entry permanently. Admins only."""
    return await service.delete_entry(entry_id)
