"""Identity & Session Manager.

The client id lives in the persistent scope and never changes once written.
The session id lives in the tab scope and rotates after an idle timeout;
every rotation bumps the persistent visit count.
"""

import asyncio
import logging
import time
import uuid
from typing import Callable, Optional

from .storage import KeyValueStore, SafeStore

logger = logging.getLogger(__name__)

SESSION_TIMEOUT_SECONDS = 30 * 60
HEARTBEAT_SECONDS = 60


def new_id() -> str:
    return str(uuid.uuid4())


class IdentityManager:
    """Issues client, session and journey ids backed by two storage scopes."""

    def __init__(
        self,
        persistent: Optional[KeyValueStore],
        session: Optional[KeyValueStore],
        prefix: str = "utm_cm_",
        session_timeout: float = SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_id,
    ):
        self.persistent = SafeStore(persistent, scope="persistent storage")
        self.session = SafeStore(session, scope="session storage")
        self.session_timeout = session_timeout
        self.clock = clock
        self.id_factory = id_factory

        self.client_id_key = f"{prefix}client_id"
        self.session_id_key = f"{prefix}session_id"
        self.journey_id_key = f"{prefix}journey_id"
        self.visit_count_key = f"{prefix}visit_count"
        self.last_activity_key = f"{prefix}last_activity"

    def get_client_id(self) -> str:
        """Return the durable client id, creating it on first use."""
        client_id = self.persistent.get(self.client_id_key)
        if client_id:
            return client_id

        client_id = self.id_factory()
        self.persistent.set(self.client_id_key, client_id)
        # Another initializer may have written first; storage is the arbiter
        return self.persistent.get(self.client_id_key) or client_id

    def get_session_id(self) -> str:
        """
        Return the current session id, rotating it when the session is
        missing or idle for longer than the timeout. Always refreshes the
        last-activity time.
        """
        now = self.clock()
        session_id = self.session.get(self.session_id_key)
        last_activity = self._last_activity()

        expired = last_activity is None or now - last_activity >= self.session_timeout
        if not session_id or expired:
            session_id = self.id_factory()
            self.session.set(self.session_id_key, session_id)
            self.persistent.set(self.visit_count_key, str(self.visit_count + 1))
            logger.debug(f"Started session {session_id}")

        self.persistent.set(self.last_activity_key, repr(now))
        return session_id

    def get_journey_id(self) -> str:
        """Return the per-tab journey id, creating it on first use."""
        journey_id = self.session.get(self.journey_id_key)
        if not journey_id:
            journey_id = self.id_factory()
            self.session.set(self.journey_id_key, journey_id)
        return journey_id

    @property
    def visit_count(self) -> int:
        raw = self.persistent.get(self.visit_count_key)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def touch(self) -> None:
        """Refresh last activity without rotating the session."""
        if self.session.get(self.session_id_key):
            self.persistent.set(self.last_activity_key, repr(self.clock()))

    def _last_activity(self) -> Optional[float]:
        raw = self.persistent.get(self.last_activity_key)
        if not raw:
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    async def run_heartbeat(self, stop: asyncio.Event, interval: float = HEARTBEAT_SECONDS) -> None:
        """Refresh last activity every `interval` seconds until stopped."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                self.touch()
