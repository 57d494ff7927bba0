"""
Token health monitor. Decides whether the shared Session is still usable and
reconnects when it is not.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Iterable, Optional

from ..config import ResilienceConfig
from ..session import Session
from .classify import classify_error

if TYPE_CHECKING:
    from ..directory.protocol import DirectoryClient

logger = logging.getLogger("m365_readiness.resilience.health")


class TokenHealthMonitor:
    """
    Keeps a Session's credential alive.

    A forced check, or a session older than (lifetime - buffer), reconnects
    straight away. Otherwise each configured endpoint is probed; an
    auth-classified probe failure triggers a reconnect, any other probe failure
    reports unhealthy without reconnecting.

    Checks are serialized by an internal lock, so concurrent callers never
    reconnect at the same time.
    """

    def __init__(
        self,
        client: DirectoryClient,
        session: Session,
        config: Optional[ResilienceConfig] = None,
    ):
        self.client = client
        self.session = session
        self.config = config or ResilienceConfig()
        self._lock = asyncio.Lock()
        self.reconnect_count = 0
        self.probe_count = 0

    @property
    def refresh_after(self) -> timedelta:
        return timedelta(
            minutes=self.config.token_lifetime_minutes - self.config.refresh_buffer_minutes
        )

    def is_stale(self) -> bool:
        return self.session.age > self.refresh_after

    async def check_and_refresh(self, force: bool = False) -> bool:
        """Return True if the session is usable, reconnecting when needed."""
        async with self._lock:
            if force:
                logger.info("Forced session refresh requested.")
                return await self._reconnect()

            if self.is_stale():
                logger.info(
                    f"Session age {self.session.age} exceeds refresh window "
                    f"({self.refresh_after}); reconnecting."
                )
                return await self._reconnect()

            return await self._probe_all(self.config.probe_endpoints)

    async def _probe_all(self, endpoints: Iterable[str]) -> bool:
        patterns = self.config.auth_error_patterns
        for endpoint in endpoints:
            self.probe_count += 1
            try:
                await self.client.probe(endpoint)
            except Exception as e:
                if classify_error(e, patterns):
                    logger.info(f"Probe of '{endpoint}' hit an auth failure ({e}); reconnecting.")
                    return await self._reconnect()
                logger.warning(f"Probe of '{endpoint}' failed: {type(e).__name__}: {e}")
                return False
            logger.debug(f"Probe of '{endpoint}' succeeded.")
        return True

    async def _reconnect(self) -> bool:
        self.reconnect_count += 1
        try:
            credential = await self.client.reconnect(force=True)
        except Exception as e:
            logger.error(f"Reconnection failed: {type(e).__name__}: {e}")
            return False
        self.session.renew(credential)
        logger.info("Reconnected; session renewed.")
        return True
