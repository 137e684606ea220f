"""Timer state scoped to one authenticated application session.

A session is created on login and closed on logout (or when the view that
owns it goes away). Closing it cancels the poll and tick loops, closes the
HTTP client and clears the store, so no timer activity survives teardown.
"""
import logging
from typing import Optional

import httpx

from timetracker.client.api import TimerAPI
from timetracker.client.config import ClientSettings
from timetracker.client.store import TimerStore
from timetracker.client.sync import TimerSync

logger = logging.getLogger(__name__)


class TimerSession:
    """Owns the API client, the store and the sync loop for one login."""

    def __init__(
        self,
        token: str,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or ClientSettings()
        self.api = TimerAPI(token, settings=self.settings, http_client=http_client)
        self.store = TimerStore()
        self.sync = TimerSync(self.api, store=self.store, settings=self.settings)
        self.closed = False

    async def __aenter__(self) -> "TimerSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        """Start synchronizing with the service."""
        await self.sync.start()
        logger.info("Timer session opened")

    async def close(self) -> None:
        """Stop synchronizing and release everything the session holds."""
        if self.closed:
            return
        await self.sync.stop()
        await self.api.aclose()
        self.store.reset()
        self.closed = True
        logger.info("Timer session closed")


async def login(
    base_url: str,
    email: str,
    password: str,
    settings: Optional[ClientSettings] = None,
) -> TimerSession:
    """
    Authenticate and open a fresh timer session.

    Raises:
        PermissionDeniedError: If the credentials are rejected
        TransientNetworkError: If the service cannot be reached
    """
    settings = (settings or ClientSettings()).model_copy(update={"api_base_url": base_url})
    async with TimerAPI(settings=settings) as api:
        token = await api.login(email, password)

    session = TimerSession(token, settings=settings)
    await session.open()
    return session
