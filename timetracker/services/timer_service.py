"""Timer service - business logic for time tracking."""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from timetracker.config import settings
from timetracker.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from timetracker.models.time_entry import (
    ActiveTimer,
    ApprovalStatus,
    LongRunningTimers,
    ManualEntryCreate,
    TimeEntry,
    TimeEntryFilters,
    TimeEntryUpdate,
    TimerState,
    TimesheetSummary,
)
from timetracker.services import approval, timer_state
from timetracker.services.accounting import (
    entry_active_seconds,
    manual_duration_minutes,
    manual_window,
)
from timetracker.utils.clock import utcnow

logger = logging.getLogger(__name__)


class TimerService:
    """Service for handling time tracking operations."""

    def __init__(self, db, required_task_status: Optional[str] = None):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.tasks = db["tasks"]
        self.required_task_status = required_task_status or settings.tracked_task_status

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.
        """
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            task_id=doc["task_id"],
            project_id=doc.get("project_id"),
            note=doc.get("note") or "",
            start_time=doc["start_time"],
            end_time=doc.get("end_time"),
            paused_at=doc.get("paused_at"),
            paused_seconds=doc.get("paused_seconds", 0),
            duration_minutes=doc.get("duration_minutes"),
            status=doc.get("status"),
            is_manual=doc.get("is_manual", False),
            approved_by=doc.get("approved_by"),
            approved_at=doc.get("approved_at"),
            rejection_reason=doc.get("rejection_reason"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_active(self, doc: dict, now: datetime) -> ActiveTimer:
        """Convert an open entry document to ActiveTimer with its live duration."""
        seconds = entry_active_seconds(doc, now)
        state = timer_state.state_of(doc)
        return ActiveTimer(
            **self._doc_to_entry(doc).model_dump(by_alias=True),
            state=state,
            is_paused=state is TimerState.PAUSED,
            current_duration=seconds,
            elapsed_minutes=seconds // 60,
        )

    def _object_id(self, entry_id: str) -> ObjectId:
        try:
            return ObjectId(entry_id)
        except Exception:
            raise ValidationError("Invalid entry ID format")

    async def _get_task(self, task_id: str) -> dict:
        try:
            object_id = ObjectId(task_id)
        except Exception:
            raise ValidationError("Invalid task ID format")

        task = await self.tasks.find_one({"_id": object_id})
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def _find_active(self, user_id: str) -> Optional[dict]:
        return await self.time_entries.find_one({
            "user_id": user_id,
            "is_open": True,
        })

    async def _get_entry_doc(self, entry_id: str, user_id: Optional[str] = None) -> dict:
        query = {"_id": self._object_id(entry_id)}
        if user_id is not None:
            query["user_id"] = user_id

        doc = await self.time_entries.find_one(query)
        if not doc:
            raise NotFoundError("Time entry not found")
        return doc

    async def start_timer(
        self,
        user_id: str,
        task_id: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Start a new timer.

        Args:
            user_id: User ID
            task_id: Task to track time against
            note: Optional note
            now: Optional start time (defaults to now)

        Returns:
            Created time entry

        Raises:
            NotFoundError: If the task doesn't exist
            InvalidTaskStateError: If the task is not in progress
            ConflictError: If a timer for another task is open
            InvalidStateError: If a timer for this task is already open
        """
        task = await self._get_task(task_id)
        active = await self._find_active(user_id)
        timer_state.check_can_start(active, task, self.required_task_status)

        if now is None:
            now = utcnow()

        entry_doc = {
            "user_id": user_id,
            "task_id": str(task["_id"]),
            "project_id": task.get("project_id"),
            "note": note or "",
            "start_time": now,
            "end_time": None,
            "paused_at": None,
            "paused_seconds": 0,
            "duration_minutes": None,
            "status": None,
            "is_open": True,
            "is_manual": False,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            # Lost a race with another Start for the same user
            raise ConflictError("Another timer is already active. Stop it first.")
        entry_doc["_id"] = result.inserted_id

        logger.info(
            "Timer started",
            extra={"user_id": user_id, "timer_id": str(result.inserted_id), "task_id": entry_doc["task_id"]},
        )
        return self._doc_to_entry(entry_doc)

    async def _transition(
        self,
        user_id: str,
        timer_id: str,
        expected: Optional[TimerState],
        transition: Callable[[dict, datetime], dict],
        now: Optional[datetime],
    ) -> TimeEntry:
        """Apply a state transition to one of the user's timers.

        The update is conditional on the entry still being in ``expected``;
        a concurrent command that got there first turns into InvalidStateError.
        """
        doc = await self._get_entry_doc(timer_id, user_id=user_id)

        if now is None:
            now = utcnow()
        update_doc = transition(doc, now)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": doc["_id"], "user_id": user_id, **timer_state.expected_state_filter(expected)},
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise InvalidStateError("Timer state changed, refresh and try again")

        logger.info(
            "Timer %s", transition.__name__,
            extra={"user_id": user_id, "timer_id": timer_id, "state": timer_state.state_of(updated_doc).value},
        )
        return self._doc_to_entry(updated_doc)

    async def pause_timer(self, user_id: str, timer_id: str, now: Optional[datetime] = None) -> TimeEntry:
        """Pause a running timer."""
        return await self._transition(user_id, timer_id, TimerState.RUNNING, timer_state.pause, now)

    async def resume_timer(self, user_id: str, timer_id: str, now: Optional[datetime] = None) -> TimeEntry:
        """Resume a paused timer."""
        return await self._transition(user_id, timer_id, TimerState.PAUSED, timer_state.resume, now)

    async def stop_timer(self, user_id: str, timer_id: str, now: Optional[datetime] = None) -> TimeEntry:
        """
        Stop a running or paused timer.

        Args:
            user_id: User ID
            timer_id: Open time entry ID
            now: Optional end time (defaults to now)

        Returns:
            Settled time entry with end_time, duration and pending status

        Raises:
            NotFoundError: If the timer doesn't exist
            InvalidStateError: If the timer is already stopped
        """
        return await self._transition(user_id, timer_id, None, timer_state.stop, now)

    async def get_active_timer(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[ActiveTimer]:
        """
        Get the user's open timer, if any.

        Args:
            user_id: User ID
            now: Instant to compute the live duration at

        Returns:
            Active timer with its authoritative duration, or None
        """
        doc = await self._find_active(user_id)
        if not doc:
            return None

        return self._doc_to_active(doc, now or utcnow())

    async def create_manual_entry(
        self,
        user_id: str,
        entry_create: ManualEntryCreate,
        now: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Create a closed time entry from wall-clock times.

        Raises:
            NotFoundError: If the task doesn't exist
            ValidationError: If end time is not after start time
        """
        start_time, end_time = manual_window(
            entry_create.date, entry_create.start_time, entry_create.end_time
        )
        duration = manual_duration_minutes(
            entry_create.date, entry_create.start_time, entry_create.end_time
        )
        task = await self._get_task(entry_create.task_id)

        if now is None:
            now = utcnow()

        entry_doc = {
            "user_id": user_id,
            "task_id": str(task["_id"]),
            "project_id": task.get("project_id"),
            "note": entry_create.note or "",
            "start_time": start_time,
            "end_time": end_time,
            "paused_at": None,
            "paused_seconds": 0,
            "duration_minutes": duration,
            "status": ApprovalStatus.PENDING.value,
            "is_open": False,
            "is_manual": True,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        logger.info(
            "Manual entry created",
            extra={"user_id": user_id, "timer_id": str(result.inserted_id), "task_id": entry_doc["task_id"]},
        )
        return self._doc_to_entry(entry_doc)

    async def list_entries(self, filters: TimeEntryFilters) -> list[TimeEntry]:
        """
        List time entries, most recent first.

        Args:
            filters: Optional user, project, task, status and date range filters

        Returns:
            List of time entries
        """
        query = {}

        if filters.user_id:
            query["user_id"] = filters.user_id
        if filters.project_id:
            query["project_id"] = filters.project_id
        if filters.task_id:
            query["task_id"] = filters.task_id
        if filters.status:
            query["status"] = filters.status.value

        if filters.start_date or filters.end_date:
            query["start_time"] = {}
            if filters.start_date:
                query["start_time"]["$gte"] = filters.start_date
            if filters.end_date:
                query["start_time"]["$lte"] = filters.end_date

        cursor = self.time_entries.find(query).sort("start_time", -1)
        entry_docs = await cursor.to_list(length=None)

        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def timesheet(self, filters: TimeEntryFilters) -> TimesheetSummary:
        """List entries with total settled minutes and hours."""
        entries = await self.list_entries(filters)
        total_minutes = sum(entry.duration_minutes or 0 for entry in entries)

        return TimesheetSummary(
            time_logs=entries,
            total_minutes=total_minutes,
            total_hours=round(total_minutes / 60, 2),
            total_logs=len(entries),
        )

    async def get_entry(self, entry_id: str, user_id: Optional[str] = None) -> TimeEntry:
        """Get one time entry, optionally restricted to an owner."""
        return self._doc_to_entry(await self._get_entry_doc(entry_id, user_id=user_id))

    async def update_entry(
        self,
        user_id: str,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Update the note of one of the user's time entries.

        Raises:
            NotFoundError: If entry not found
        """
        existing = await self._get_entry_doc(entry_id, user_id=user_id)

        update_doc = {
            "updated_at": utcnow(),
        }
        if entry_update.note is not None:
            update_doc["note"] = entry_update.note

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": existing["_id"], "user_id": user_id},
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise NotFoundError("Time entry not found")

        return self._doc_to_entry(updated_doc)

    async def delete_entry(self, entry_id: str) -> dict:
        """
        Delete a time entry (administrative).

        Returns:
            Dictionary with deleted_count

        Raises:
            NotFoundError: If entry not found
        """
        existing = await self._get_entry_doc(entry_id)

        result = await self.time_entries.delete_one({"_id": existing["_id"]})

        logger.info("Time entry deleted", extra={"timer_id": entry_id})
        return {"deleted_count": result.deleted_count}

    async def _decide(self, entry_id: str, decide: Callable[[dict], dict]) -> TimeEntry:
        doc = await self._get_entry_doc(entry_id)
        update_doc = decide(doc)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": doc["_id"], "status": ApprovalStatus.PENDING.value},
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise InvalidStateError("Time entry was already approved or rejected")

        logger.info(
            "Time entry %s", update_doc["status"],
            extra={"user_id": update_doc["approved_by"], "timer_id": entry_id},
        )
        return self._doc_to_entry(updated_doc)

    async def approve_entry(
        self,
        actor_id: str,
        entry_id: str,
        now: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Approve a pending time entry.

        Raises:
            NotFoundError: If entry not found
            InvalidStateError: If the entry is open or already decided
        """
        now = now or utcnow()
        return await self._decide(entry_id, lambda doc: approval.approve(doc, actor_id, now))

    async def reject_entry(
        self,
        actor_id: str,
        entry_id: str,
        reason: str,
        now: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Reject a pending time entry with a reason.

        Raises:
            NotFoundError: If entry not found
            ValidationError: If the reason is empty
            InvalidStateError: If the entry is open or already decided
        """
        now = now or utcnow()
        return await self._decide(entry_id, lambda doc: approval.reject(doc, actor_id, reason, now))

    async def long_running_timers(
        self,
        threshold_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> LongRunningTimers:
        """Open timers started more than ``threshold_hours`` ago."""
        if threshold_hours is None:
            threshold_hours = settings.long_running_hours
        now = now or utcnow()

        cursor = self.time_entries.find({
            "is_open": True,
            "start_time": {"$lte": now - timedelta(hours=threshold_hours)},
        }).sort("start_time", 1)
        docs = await cursor.to_list(length=None)

        timers = [self._doc_to_active(doc, now) for doc in docs]
        return LongRunningTimers(long_running_timers=timers, count=len(timers))
