"""Timer synchronization loop and command layer.

``TimerSync`` keeps a ``TimerStore`` consistent with the user's single
authoritative timer:

* a poll task fetches the active timer every ``poll_interval_seconds`` and
  overwrites the store;
* a tick task advances the displayed duration every
  ``tick_interval_seconds`` while Running;
* commands go to the service one at a time, never touch the store before
  the service confirms, and are followed by an immediate poll.

Both tasks run on the caller's event loop and are cancelled by ``stop()``.
"""
import asyncio
import logging
from datetime import date, time
from typing import Awaitable, Callable, Optional, TypeVar

from timetracker.client.api import TimerAPI
from timetracker.client.config import ClientSettings
from timetracker.client.store import TimerStore
from timetracker.errors import (
    ConflictError,
    InvalidStateError,
    TimeTrackingError,
    TransientNetworkError,
    ValidationError,
)
from timetracker.models.time_entry import TimeEntry, TimerState
from timetracker.services.accounting import manual_duration_minutes

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimerSync:
    """Polling reconciliation plus the narrow command API for one session."""

    def __init__(
        self,
        api: TimerAPI,
        store: Optional[TimerStore] = None,
        settings: Optional[ClientSettings] = None,
    ):
        settings = settings or ClientSettings()
        self.api = api
        self.store = store or TimerStore()
        self.poll_interval = settings.poll_interval_seconds
        self.tick_interval = settings.tick_interval_seconds
        self._poll_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._poll_seq = 0
        self._applied_seq = 0

    async def __aenter__(self) -> "TimerSync":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        """Poll once, then schedule the poll and tick loops."""
        if self.running:
            return
        await self.poll()
        self._poll_task = asyncio.create_task(self._poll_loop(), name="timer-poll")
        self._tick_task = asyncio.create_task(self._tick_loop(), name="timer-tick")
        logger.debug("Timer sync started")

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        tasks = [t for t in (self._poll_task, self._tick_task) if t is not None]
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error("Timer sync task %s failed: %r", task.get_name(), result)
        self._poll_task = None
        self._tick_task = None
        logger.debug("Timer sync stopped")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll()

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        last = loop.time()
        while True:
            await asyncio.sleep(self.tick_interval)
            whole = int(loop.time() - last)
            if whole:
                self.store.tick(whole)
                last += whole

    async def poll(self) -> bool:
        """
        Fetch the active timer and overwrite local state with it.

        A failure keeps the last known state on display; only an explicit
        "no active timer" answer moves the store to Idle. A response to a
        request sent before the most recently applied one is dropped, so a
        slow scheduled poll cannot undo a command's re-poll. Never raises.

        Returns:
            True if the store was updated from the service
        """
        self._poll_seq += 1
        seq = self._poll_seq
        try:
            timer = await self.api.get_active_timer()
        except TransientNetworkError as e:
            logger.warning("Active timer poll failed: %s", e.message)
            self._mark_stale(seq)
            return False
        except TimeTrackingError as e:
            logger.warning("Active timer poll rejected: %s (%s)", e.message, e.code)
            self._mark_stale(seq)
            return False
        except Exception:
            logger.exception("Active timer poll crashed")
            self._mark_stale(seq)
            return False

        if seq < self._applied_seq:
            logger.debug("Dropping out-of-order poll %d (applied %d)", seq, self._applied_seq)
            return False

        self._applied_seq = seq
        self.store.apply_poll(timer)
        return True

    def _mark_stale(self, seq: int) -> None:
        if seq > self._applied_seq:
            self.store.mark_stale()

    async def _command(self, name: str, send: Callable[[], Awaitable[T]]) -> T:
        """Run one command round trip.

        Refuses while another command is in flight so that responses are
        never applied out of order. On failure the error is kept verbatim
        for display and re-raised; the store is left as it was.
        """
        if self.store.pending:
            raise InvalidStateError("Another timer command is still in progress")

        self.store.pending = True
        self.store.error = None
        try:
            result = await send()
        except TimeTrackingError as e:
            self.store.error = e.message
            logger.info("Timer command %s failed: %s (%s)", name, e.message, e.code)
            raise
        finally:
            self.store.pending = False

        # poll() never raises, so a confirmed command always returns its result
        await self.poll()
        return result

    def _require_timer(self, *allowed: TimerState) -> str:
        if self.store.timer is None or self.store.state is TimerState.IDLE:
            self._reject_locally(InvalidStateError("No active timer"))
        if self.store.state not in allowed:
            self._reject_locally(InvalidStateError(f"Timer is already {self.store.state.value}"))
        return self.store.timer.id

    def _reject_locally(self, error: TimeTrackingError) -> None:
        self.store.error = error.message
        raise error

    async def start_timer(self, task_id: Optional[str], note: Optional[str] = None) -> TimeEntry:
        """
        Start a timer for ``task_id``.

        Raises:
            ValidationError: If no task is selected
            ConflictError: If another task's timer is active
            InvalidStateError: If this task's timer is already active
        """
        if not task_id:
            self._reject_locally(ValidationError("Please select a task first"))
        if self.store.conflicts_with(task_id):
            self._reject_locally(
                ConflictError("Another timer is active. Stop it before starting a new one.")
            )
        if self.store.state is not TimerState.IDLE:
            self._reject_locally(InvalidStateError("Timer already running for this task"))

        return await self._command("start", lambda: self.api.start_timer(task_id, note))

    async def pause_timer(self) -> TimeEntry:
        """Pause the running timer."""
        timer_id = self._require_timer(TimerState.RUNNING)
        return await self._command("pause", lambda: self.api.pause_timer(timer_id))

    async def resume_timer(self) -> TimeEntry:
        """Resume the paused timer."""
        timer_id = self._require_timer(TimerState.PAUSED)
        return await self._command("resume", lambda: self.api.resume_timer(timer_id))

    async def stop_timer(self) -> TimeEntry:
        """Stop the active timer, running or paused."""
        timer_id = self._require_timer(TimerState.RUNNING, TimerState.PAUSED)
        return await self._command("stop", lambda: self.api.stop_timer(timer_id))

    async def create_manual_entry(
        self,
        task_id: Optional[str],
        entry_date: date,
        start_time: time,
        end_time: time,
        note: Optional[str] = None,
    ) -> TimeEntry:
        """
        Submit a closed entry for ``entry_date``.

        Raises:
            ValidationError: If no task is selected or end is not after start
        """
        if not task_id:
            self._reject_locally(ValidationError("Please select a task first"))
        try:
            manual_duration_minutes(entry_date, start_time, end_time)
        except ValidationError as e:
            self._reject_locally(e)

        return await self._command(
            "manual",
            lambda: self.api.create_manual_entry(task_id, entry_date, start_time, end_time, note),
        )

    async def approve_entry(self, entry_id: str) -> TimeEntry:
        """Approve a pending entry."""
        return await self._command("approve", lambda: self.api.approve_entry(entry_id))

    async def reject_entry(self, entry_id: str, reason: str) -> TimeEntry:
        """
        Reject a pending entry.

        Raises:
            ValidationError: If ``reason`` is blank
        """
        if not reason or not reason.strip():
            self._reject_locally(ValidationError("Please provide a rejection reason"))
        return await self._command("reject", lambda: self.api.reject_entry(entry_id, reason))
