"""Event delivery with a bounded retry queue.

Events that no transport accepts are parked in persistent storage. The queue
is drained only when the page becomes visible again or right after a live
delivery succeeds; there is no polling timer.
"""

import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .storage import KeyValueStore, SafeStore
from .transport import DeliveryResult, DeliveryStatus, Transport

logger = logging.getLogger(__name__)

PENDING_CAPACITY = 10
PENDING_TTL_SECONDS = 24 * 60 * 60


class PendingEvent(BaseModel):
    """A payload that failed delivery and awaits retry."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    payload: Dict[str, Any]
    enqueued_at: float


class PendingQueue:
    """FIFO of undelivered payloads, persisted as one JSON list."""

    def __init__(
        self,
        storage: Optional[KeyValueStore],
        key: str = "utm_cm_pending_events",
        capacity: int = PENDING_CAPACITY,
        ttl: float = PENDING_TTL_SECONDS,
    ):
        self.storage = SafeStore(storage, scope="persistent storage")
        self.key = key
        self.capacity = capacity
        self.ttl = ttl

    def load(self) -> List[PendingEvent]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            return [PendingEvent.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable pending queue: {e}")
            return []

    def save(self, entries: List[PendingEvent]) -> None:
        self.storage.set(self.key, json.dumps([entry.model_dump() for entry in entries]))

    def push(self, payload: Dict[str, Any], now: float) -> PendingEvent:
        """Append a payload, evicting the oldest entries beyond capacity."""
        entry = PendingEvent(payload=payload, enqueued_at=now)
        entries = self.load()
        entries.append(entry)
        if len(entries) > self.capacity:
            dropped = len(entries) - self.capacity
            logger.warning(f"Pending queue full; dropping {dropped} oldest event(s)")
            entries = entries[dropped:]
        self.save(entries)
        return entry

    def is_expired(self, entry: PendingEvent, now: float) -> bool:
        return now - entry.enqueued_at > self.ttl

    def __len__(self) -> int:
        return len(self.load())


class EventDelivery:
    """Sends payloads through the first transport that accepts them."""

    def __init__(
        self,
        url: str,
        transports: List[Transport],
        queue: PendingQueue,
        clock: Callable[[], float] = time.time,
    ):
        self.url = url
        self.transports = transports
        self.queue = queue
        self.clock = clock
        self._draining = False

    async def deliver(self, payload: Dict[str, Any]) -> DeliveryResult:
        """Try every transport in order; queue the payload if none succeeds."""
        transport_name = await self._attempt(payload)
        if transport_name:
            await self.drain_pending()
            return DeliveryResult(status=DeliveryStatus.DELIVERED, transport=transport_name)

        self.queue.push(payload, self.clock())
        return DeliveryResult(status=DeliveryStatus.QUEUED, error="all transports failed")

    async def drain_pending(self) -> int:
        """
        Re-send each unexpired queued payload once, in enqueue order.
        Returns the number delivered; failures stay queued for the next
        trigger.
        """
        if self._draining:
            return 0
        self._draining = True
        try:
            now = self.clock()
            settled = set()
            delivered = 0
            for entry in self.queue.load():
                if self.queue.is_expired(entry, now):
                    logger.info(f"Dropping pending {entry.payload.get('event_type')} event older than {self.queue.ttl}s")
                    settled.add(entry.id)
                    continue
                if await self._attempt(entry.payload):
                    settled.add(entry.id)
                    delivered += 1

            # Re-read so entries queued while we were sending are kept
            if settled:
                self.queue.save([entry for entry in self.queue.load() if entry.id not in settled])
            if delivered:
                logger.debug(f"Delivered {delivered} pending event(s)")
            return delivered
        finally:
            self._draining = False

    async def _attempt(self, payload: Dict[str, Any]) -> Optional[str]:
        body = json.dumps(payload).encode("utf-8")
        for transport in self.transports:
            try:
                if await transport.send(self.url, body):
                    return transport.name
            except Exception as e:
                logger.warning(f"Tracking: {transport.name} failed to send data: {e}")
        return None
