"""Tests for the timer state machine."""
import pytest
from datetime import timedelta
from bson import ObjectId

from timetracker.errors import ConflictError, InvalidStateError, InvalidTaskStateError
from timetracker.models.time_entry import TimerState
from timetracker.services import timer_state


def _open_entry(t0, task_id="task-1", **overrides):
    doc = {
        "_id": ObjectId(),
        "user_id": "user123",
        "task_id": task_id,
        "start_time": t0,
        "end_time": None,
        "paused_at": None,
        "paused_seconds": 0,
        "duration_minutes": None,
        "status": None,
        "is_open": True,
    }
    doc.update(overrides)
    return doc


def _apply(doc, update):
    applied = dict(doc)
    applied.update(update)
    return applied


class TestStateOf:
    """Tests for deriving the timer state."""

    def test_no_entry_is_idle(self):
        assert timer_state.state_of(None) is TimerState.IDLE

    def test_open_entry_is_running(self, t0):
        assert timer_state.state_of(_open_entry(t0)) is TimerState.RUNNING

    def test_open_entry_with_paused_at_is_paused(self, t0):
        doc = _open_entry(t0, paused_at=t0 + timedelta(minutes=1))
        assert timer_state.state_of(doc) is TimerState.PAUSED

    def test_closed_entry_is_idle(self, t0):
        doc = _open_entry(t0, end_time=t0 + timedelta(minutes=5), is_open=False)
        assert timer_state.state_of(doc) is TimerState.IDLE


class TestCheckCanStart:
    """Tests for Start preconditions."""

    def test_idle_with_in_progress_task(self, task_doc):
        timer_state.check_can_start(None, task_doc, "in_progress")

    def test_task_not_in_progress(self, task_doc):
        task_doc["status"] = "todo"

        with pytest.raises(InvalidTaskStateError, match="in progress"):
            timer_state.check_can_start(None, task_doc, "in_progress")

    def test_active_timer_for_different_task_conflicts(self, t0, task_doc):
        active = _open_entry(t0, task_id=str(ObjectId()))

        with pytest.raises(ConflictError):
            timer_state.check_can_start(active, task_doc, "in_progress")

    def test_paused_timer_for_different_task_conflicts(self, t0, task_doc):
        active = _open_entry(t0, task_id=str(ObjectId()), paused_at=t0)

        with pytest.raises(ConflictError):
            timer_state.check_can_start(active, task_doc, "in_progress")

    def test_active_timer_for_same_task(self, t0, task_doc):
        active = _open_entry(t0, task_id=str(task_doc["_id"]))

        with pytest.raises(InvalidStateError, match="already running"):
            timer_state.check_can_start(active, task_doc, "in_progress")


class TestTransitions:
    """Tests for pause, resume and stop."""

    def test_pause_records_paused_at(self, t0):
        now = t0 + timedelta(minutes=5)
        update = timer_state.pause(_open_entry(t0), now)

        assert update["paused_at"] == now

    def test_pause_twice_fails(self, t0):
        paused = _apply(_open_entry(t0), timer_state.pause(_open_entry(t0), t0))

        with pytest.raises(InvalidStateError, match="already paused"):
            timer_state.pause(paused, t0 + timedelta(minutes=1))

    def test_pause_stopped_timer_fails(self, t0):
        doc = _open_entry(t0, end_time=t0, is_open=False)

        with pytest.raises(InvalidStateError, match="No active timer"):
            timer_state.pause(doc, t0)

    def test_resume_folds_pause_into_paused_seconds(self, t0):
        doc = _open_entry(t0, paused_at=t0 + timedelta(minutes=5), paused_seconds=30)
        update = timer_state.resume(doc, t0 + timedelta(minutes=10))

        assert update["paused_at"] is None
        assert update["paused_seconds"] == 30 + 300

    def test_resume_running_timer_fails(self, t0):
        with pytest.raises(InvalidStateError, match="not paused"):
            timer_state.resume(_open_entry(t0), t0)

    def test_resume_without_active_timer_fails(self, t0):
        with pytest.raises(InvalidStateError, match="No active timer"):
            timer_state.resume(None, t0)

        with pytest.raises(InvalidStateError, match="No active timer"):
            timer_state.resume(_open_entry(t0, end_time=t0, is_open=False), t0)

    def test_stop_settles_and_marks_pending(self, t0):
        update = timer_state.stop(_open_entry(t0), t0 + timedelta(minutes=42, seconds=59))

        assert update["end_time"] == t0 + timedelta(minutes=42, seconds=59)
        assert update["duration_minutes"] == 42
        assert update["status"] == "pending"
        assert update["is_open"] is False
        assert update["paused_at"] is None

    def test_stop_while_paused_excludes_ongoing_pause(self, t0):
        doc = _open_entry(t0, paused_at=t0 + timedelta(minutes=20))
        update = timer_state.stop(doc, t0 + timedelta(minutes=50))

        assert update["duration_minutes"] == 20
        assert update["paused_seconds"] == 30 * 60

    def test_stop_twice_fails(self, t0):
        doc = _open_entry(t0)
        stopped = _apply(doc, timer_state.stop(doc, t0 + timedelta(minutes=1)))

        with pytest.raises(InvalidStateError, match="already stopped"):
            timer_state.stop(stopped, t0 + timedelta(minutes=2))

    def test_start_pause_resume_stop_scenario(self, t0):
        """Start at T0, pause at +5, resume at +10, stop at +15 -> 10 minutes."""
        doc = _open_entry(t0)

        doc = _apply(doc, timer_state.pause(doc, t0 + timedelta(minutes=5)))
        assert timer_state.state_of(doc) is TimerState.PAUSED

        doc = _apply(doc, timer_state.resume(doc, t0 + timedelta(minutes=10)))
        assert timer_state.state_of(doc) is TimerState.RUNNING

        doc = _apply(doc, timer_state.stop(doc, t0 + timedelta(minutes=15)))
        assert timer_state.state_of(doc) is TimerState.IDLE
        assert doc["duration_minutes"] == 10

    @pytest.mark.parametrize(
        "run_a, pause_a, run_b, pause_b, run_c",
        [
            (60, 0, 0, 0, 0),
            (125, 30, 61, 600, 7),
            (1, 3599, 1, 1, 59),
            (3600, 60, 3600, 60, 1),
        ],
    )
    def test_duration_is_wall_time_minus_pauses(self, t0, run_a, pause_a, run_b, pause_b, run_c):
        now = t0
        doc = _open_entry(t0)
        for run, pause in ((run_a, pause_a), (run_b, pause_b)):
            now += timedelta(seconds=run)
            doc = _apply(doc, timer_state.pause(doc, now))
            now += timedelta(seconds=pause)
            doc = _apply(doc, timer_state.resume(doc, now))
        now += timedelta(seconds=run_c)
        doc = _apply(doc, timer_state.stop(doc, now))

        active = run_a + run_b + run_c
        assert doc["duration_minutes"] == active // 60
        assert doc["paused_seconds"] == pause_a + pause_b


class TestExpectedStateFilter:
    """Tests for conditional update filters."""

    def test_running(self):
        assert timer_state.expected_state_filter(TimerState.RUNNING) == {
            "is_open": True,
            "paused_at": None,
        }

    def test_paused(self):
        assert timer_state.expected_state_filter(TimerState.PAUSED) == {
            "is_open": True,
            "paused_at": {"$ne": None},
        }

    def test_any_open(self):
        assert timer_state.expected_state_filter() == {"is_open": True}
