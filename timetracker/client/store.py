"""Local cache of the authoritative timer for one client session.

Two writers update ``display_seconds``: the poll, which copies the
server's ``current_duration``, and the tick, which adds elapsed seconds
between polls for smooth display. The poll always wins; a tick never
changes anything but the display value and only while Running.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from timetracker.models.time_entry import ActiveTimer, TimerState
from timetracker.services.accounting import format_duration
from timetracker.utils.clock import utcnow


@dataclass
class TimerStore:
    """Client-visible timer state."""

    state: TimerState = TimerState.IDLE
    timer: Optional[ActiveTimer] = None
    display_seconds: int = 0
    error: Optional[str] = None
    pending: bool = False
    stale: bool = False
    last_synced_at: Optional[datetime] = None

    def apply_poll(self, timer: Optional[ActiveTimer]) -> None:
        """Replace local state with a successful poll result."""
        self.timer = timer
        if timer is None:
            self.state = TimerState.IDLE
            self.display_seconds = 0
        else:
            self.state = timer.state
            self.display_seconds = timer.current_duration
        self.stale = False
        self.last_synced_at = utcnow()

    def mark_stale(self) -> None:
        """Keep the last known state on display after a failed poll."""
        self.stale = True

    def tick(self, seconds: int = 1) -> None:
        """Advance the displayed duration between polls."""
        if self.state is TimerState.RUNNING:
            self.display_seconds += seconds

    def reset(self) -> None:
        """Forget everything; used on session teardown."""
        self.state = TimerState.IDLE
        self.timer = None
        self.display_seconds = 0
        self.error = None
        self.pending = False
        self.stale = False
        self.last_synced_at = None

    @property
    def task_id(self) -> Optional[str]:
        return self.timer.task_id if self.timer else None

    @property
    def display(self) -> str:
        return format_duration(self.display_seconds)

    def conflicts_with(self, task_id: Optional[str]) -> bool:
        """True when an open timer belongs to a different task than ``task_id``."""
        return self.timer is not None and self.timer.task_id != task_id
