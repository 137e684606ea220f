"""
Async client for the time tracking API with error mapping.

Every call is a single request/response exchange. Commands are not
retried: repeating a rejected command without changing its input would
only reproduce the rejection, and network failures are reported as
``TransientNetworkError`` for the caller to decide.
"""
import logging
from datetime import date, time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from timetracker.client.config import ClientSettings
from timetracker.errors import (
    ERRORS_BY_CODE,
    NotFoundError,
    PermissionDeniedError,
    TimeTrackingError,
    TransientNetworkError,
    ValidationError,
)
from timetracker.models.time_entry import (
    ActiveTimer,
    ManualEntryCreate,
    TimeEntry,
    TimeEntryFilters,
    TimesheetSummary,
)

logger = logging.getLogger(__name__)


def create_http_client(
    base_url: str,
    token: Optional[str] = None,
    timeout: float = 10.0,
    **kwargs,
) -> httpx.AsyncClient:
    """Create an async HTTP client for the time tracking API."""
    headers = kwargs.pop("headers", {})
    if token:
        headers.setdefault("Authorization", f"Bearer {token}")
    headers.setdefault("User-Agent", "timetracker-client/0.1")

    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
        headers=headers,
        **kwargs,
    )


def _error_message(body: Any, fallback: str) -> str:
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        # FastAPI request validation errors
        messages = [item.get("msg", "") for item in detail if isinstance(item, dict)]
        return "; ".join(m for m in messages if m) or fallback
    return fallback


def error_from_response(response: httpx.Response) -> TimeTrackingError:
    """Map an error response onto the time tracking error taxonomy."""
    if response.status_code >= 500:
        return TransientNetworkError(
            f"Time tracking service error: {response.status_code}"
        )

    try:
        body = response.json()
    except ValueError:
        body = {"detail": response.text}

    message = _error_message(body, f"Request failed with status {response.status_code}")
    code = body.get("code") if isinstance(body, dict) else None

    if code in ERRORS_BY_CODE:
        return ERRORS_BY_CODE[code](message)
    if response.status_code in (401, 403):
        return PermissionDeniedError(message)
    if response.status_code == 404:
        return NotFoundError(message)
    if response.status_code == 422:
        return ValidationError(message)
    return TimeTrackingError(message)


class TimerAPI:
    """Async time tracking API client for one authenticated user."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or ClientSettings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout_seconds
        self._client = http_client or create_http_client(
            self.base_url, token, timeout=self.timeout
        )

    async def __aenter__(self) -> "TimerAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """
        Make one HTTP request.

        Raises:
            TransientNetworkError: On timeouts, transport failures and 5xx
            TimeTrackingError: The mapped error for any other failure
        """
        try:
            response = await self._client.request(
                method.upper(),
                path,
                params=params,
                json=json_body,
            )
        except httpx.TimeoutException as e:
            raise TransientNetworkError("Timed out reaching the time tracking service") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Could not reach the time tracking service: {e}") from e

        if response.status_code >= 400:
            error = error_from_response(response)
            logger.debug("%s %s failed: %s", method.upper(), path, error.code)
            raise error

        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransientNetworkError(
                f"Malformed response from the time tracking service: {method.upper()} {path}"
            ) from e

    async def login(self, email: str, password: str) -> str:
        """Exchange credentials for an access token."""
        data = await self._request(
            "POST", "/auth/login", json_body={"email": email, "password": password}
        )
        return data["access_token"]

    async def get_active_timer(self) -> Optional[ActiveTimer]:
        """Get the user's open timer, or None when idle."""
        data = await self._request("GET", "/time/active")
        if data is not None and not isinstance(data, dict):
            raise TransientNetworkError("Unexpected active timer payload")
        payload = data.get("data") if data else None
        if not payload:
            return None
        try:
            return ActiveTimer(**payload)
        except (TypeError, PydanticValidationError) as e:
            raise TransientNetworkError(f"Unexpected active timer payload: {e}") from e

    async def start_timer(self, task_id: str, note: Optional[str] = None) -> TimeEntry:
        data = await self._request(
            "POST", "/time/start", json_body={"task_id": task_id, "note": note}
        )
        return TimeEntry(**data)

    async def pause_timer(self, timer_id: str) -> TimeEntry:
        data = await self._request("POST", "/time/pause", json_body={"timer_id": timer_id})
        return TimeEntry(**data)

    async def resume_timer(self, timer_id: str) -> TimeEntry:
        data = await self._request("POST", "/time/resume", json_body={"timer_id": timer_id})
        return TimeEntry(**data)

    async def stop_timer(self, timer_id: str) -> TimeEntry:
        data = await self._request("POST", "/time/stop", json_body={"timer_id": timer_id})
        return TimeEntry(**data)

    async def create_manual_entry(
        self,
        task_id: str,
        entry_date: date,
        start_time: time,
        end_time: time,
        note: Optional[str] = None,
    ) -> TimeEntry:
        body = ManualEntryCreate(
            task_id=task_id,
            date=entry_date,
            start_time=start_time,
            end_time=end_time,
            note=note,
        )
        data = await self._request("POST", "/time/manual", json_body=body.model_dump(mode="json"))
        return TimeEntry(**data)

    async def approve_entry(self, entry_id: str) -> TimeEntry:
        data = await self._request("POST", "/time/approve", json_body={"time_log_id": entry_id})
        return TimeEntry(**data)

    async def reject_entry(self, entry_id: str, reason: str) -> TimeEntry:
        data = await self._request(
            "POST",
            "/time/reject",
            json_body={"time_log_id": entry_id, "rejection_reason": reason},
        )
        return TimeEntry(**data)

    async def list_entries(self, filters: Optional[TimeEntryFilters] = None) -> list[TimeEntry]:
        """List time entries for timesheet and timeline views."""
        params = filters.model_dump(mode="json", exclude_none=True) if filters else None
        data = await self._request("GET", "/time/entries", params=params)
        return [TimeEntry(**item) for item in data]

    async def get_timesheet(self, filters: Optional[TimeEntryFilters] = None) -> TimesheetSummary:
        params = filters.model_dump(mode="json", exclude_none=True) if filters else None
        data = await self._request("GET", "/time/timesheet", params=params)
        return TimesheetSummary(**data)
