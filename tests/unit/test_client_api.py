"""
Tests for the timer API client.
"""
import json

import pytest
import pytest_asyncio
import respx
import httpx
from datetime import date, time

from timetracker.client.api import TimerAPI
from timetracker.client.config import ClientSettings
from timetracker.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTaskStateError,
    NotFoundError,
    PermissionDeniedError,
    TransientNetworkError,
    ValidationError,
)
from timetracker.models.time_entry import TimerState

BASE_URL = "https://tracker.test"


def entry_payload(**overrides):
    payload = {
        "id": "65f0c0ffee0000000000a001",
        "user_id": "user123",
        "task_id": "task-42",
        "project_id": "proj-1",
        "note": "",
        "start_time": "2026-03-02T09:00:00",
        "end_time": None,
        "paused_at": None,
        "paused_seconds": 0,
        "duration_minutes": None,
        "status": None,
        "is_manual": False,
        "approved_by": None,
        "approved_at": None,
        "rejection_reason": None,
        "created_at": "2026-03-02T09:00:00",
        "updated_at": "2026-03-02T09:00:00",
    }
    payload.update(overrides)
    return payload


def active_payload(**overrides):
    payload = entry_payload(
        state="running", is_paused=False, current_duration=65, elapsed_minutes=1
    )
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def api():
    """Create a test API client."""
    client = TimerAPI(
        token="test-token",
        settings=ClientSettings(api_base_url=BASE_URL, request_timeout_seconds=2.0),
    )
    yield client
    await client.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_get_active_timer_running(api):
    route = respx.get(f"{BASE_URL}/time/active").mock(
        return_value=httpx.Response(200, json={"data": active_payload()})
    )

    timer = await api.get_active_timer()

    assert timer.task_id == "task-42"
    assert timer.state is TimerState.RUNNING
    assert timer.current_duration == 65
    assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"


@pytest.mark.asyncio
@respx.mock
async def test_get_active_timer_idle(api):
    respx.get(f"{BASE_URL}/time/active").mock(
        return_value=httpx.Response(200, json={"data": None})
    )

    assert await api.get_active_timer() is None


@pytest.mark.asyncio
@respx.mock
async def test_start_timer_sends_task(api):
    route = respx.post(f"{BASE_URL}/time/start").mock(
        return_value=httpx.Response(200, json=entry_payload())
    )

    entry = await api.start_timer("task-42", note="Drafting")

    assert entry.id == "65f0c0ffee0000000000a001"
    assert json.loads(route.calls.last.request.content) == {"task_id": "task-42", "note": "Drafting"}


@pytest.mark.asyncio
@respx.mock
@pytest.mark.parametrize(
    "status_code, code, error_cls",
    [
        (409, "conflict", ConflictError),
        (422, "invalid_task_state", InvalidTaskStateError),
        (409, "invalid_state", InvalidStateError),
        (422, "validation_error", ValidationError),
        (404, "not_found", NotFoundError),
    ],
)
async def test_error_codes_map_to_taxonomy(api, status_code, code, error_cls):
    respx.post(f"{BASE_URL}/time/start").mock(
        return_value=httpx.Response(status_code, json={"detail": "Rejected by service", "code": code})
    )

    with pytest.raises(error_cls) as exc_info:
        await api.start_timer("task-42")

    assert exc_info.value.message == "Rejected by service"


@pytest.mark.asyncio
@respx.mock
async def test_request_validation_error(api):
    respx.post(f"{BASE_URL}/time/manual").mock(
        return_value=httpx.Response(
            422,
            json={"detail": [{"loc": ["body", "date"], "msg": "Input should be a valid date"}]},
        )
    )

    with pytest.raises(ValidationError, match="valid date"):
        await api.create_manual_entry("task-42", date(2026, 3, 2), time(9, 0), time(17, 0))


@pytest.mark.asyncio
@respx.mock
async def test_unauthorized(api):
    respx.get(f"{BASE_URL}/time/active").mock(
        return_value=httpx.Response(401, json={"detail": "Not authenticated"})
    )

    with pytest.raises(PermissionDeniedError, match="Not authenticated"):
        await api.get_active_timer()


@pytest.mark.asyncio
@respx.mock
async def test_server_error_is_transient(api):
    route = respx.post(f"{BASE_URL}/time/pause").mock(
        return_value=httpx.Response(503, text="unavailable")
    )

    with pytest.raises(TransientNetworkError):
        await api.pause_timer("65f0c0ffee0000000000a001")

    # Commands are never retried
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_connection_error_is_transient(api):
    respx.get(f"{BASE_URL}/time/active").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(TransientNetworkError):
        await api.get_active_timer()


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_transient(api):
    respx.post(f"{BASE_URL}/time/stop").mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(TransientNetworkError, match="Timed out"):
        await api.stop_timer("65f0c0ffee0000000000a001")


@pytest.mark.asyncio
@respx.mock
async def test_manual_entry_payload(api):
    route = respx.post(f"{BASE_URL}/time/manual").mock(
        return_value=httpx.Response(
            200,
            json=entry_payload(
                end_time="2026-03-02T17:00:00", duration_minutes=480, status="pending", is_manual=True
            ),
        )
    )

    entry = await api.create_manual_entry("task-42", date(2026, 3, 2), time(9, 0), time(17, 0))

    assert entry.duration_minutes == 480
    sent = json.loads(route.calls.last.request.content)
    assert sent["date"] == "2026-03-02"
    assert sent["start_time"] == "09:00:00"
    assert sent["end_time"] == "17:00:00"


@pytest.mark.asyncio
@respx.mock
async def test_reject_entry_payload(api):
    route = respx.post(f"{BASE_URL}/time/reject").mock(
        return_value=httpx.Response(
            200, json=entry_payload(status="rejected", rejection_reason="insufficient detail")
        )
    )

    entry = await api.reject_entry("65f0c0ffee0000000000a001", "insufficient detail")

    assert entry.rejection_reason == "insufficient detail"
    assert json.loads(route.calls.last.request.content) == {
        "time_log_id": "65f0c0ffee0000000000a001",
        "rejection_reason": "insufficient detail",
    }


@pytest.mark.asyncio
@respx.mock
async def test_login_returns_token():
    respx.post(f"{BASE_URL}/auth/login").mock(
        return_value=httpx.Response(200, json={"access_token": "abc", "token_type": "bearer"})
    )

    async with TimerAPI(settings=ClientSettings(api_base_url=BASE_URL)) as api:
        assert await api.login("dana@example.com", "pw") == "abc"


@pytest.mark.asyncio
@respx.mock
async def test_malformed_body_is_transient(api):
    respx.get(f"{BASE_URL}/time/active").mock(
        return_value=httpx.Response(200, text="<html>proxy</html>")
    )

    with pytest.raises(TransientNetworkError, match="Malformed response"):
        await api.get_active_timer()


@pytest.mark.asyncio
@respx.mock
@pytest.mark.parametrize(
    "body",
    [
        {"data": {"task_id": "task-42"}},
        {"data": ["not", "an", "object"]},
        ["not", "an", "envelope"],
    ],
)
async def test_unexpected_active_payload_is_transient(api, body):
    respx.get(f"{BASE_URL}/time/active").mock(return_value=httpx.Response(200, json=body))

    with pytest.raises(TransientNetworkError, match="Unexpected active timer payload"):
        await api.get_active_timer()
