"""The client engine facade wired into a host page.

`Tracker` owns one page lifetime: it establishes identity and session,
merges attribution, sends the pageview, fetches and applies content rules,
and routes host signals to event capture.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
from pydantic import TypeAdapter

from . import dispatch
from .attribution import AttributionStore, parse_attribution
from .capture import EventCapture
from .config import TrackerConfig
from .delivery import EventDelivery, PendingQueue
from .dispatch import EventBus, NavigationSignal
from .dom import ApplyReport, ContentApplicator, Mutator
from .events import BaseEvent, TrackingEvent
from .identity import IdentityManager
from .page_session import PageContext, PageSession
from .rules_client import RuleClient
from .storage import KeyValueStore
from .transport import Beacon, DeliveryResult, KeepAliveFetchTransport, select_transports

logger = logging.getLogger(__name__)

EVENT_ADAPTER = TypeAdapter(TrackingEvent)


class Tracker:
    def __init__(
        self,
        config: TrackerConfig,
        page: PageContext,
        persistent: Optional[KeyValueStore] = None,
        session: Optional[KeyValueStore] = None,
        mutator: Optional[Mutator] = None,
        beacon: Optional[Beacon] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.page = page
        self.clock = clock
        self.bus = EventBus()

        prefix = config.storage_prefix
        self.identity = IdentityManager(
            persistent,
            session,
            prefix=prefix,
            session_timeout=config.session_timeout_seconds,
            clock=clock,
        )
        self.attribution = AttributionStore(persistent, prefix=prefix)
        self.delivery = EventDelivery(
            config.ingest_url,
            select_transports(
                beacon,
                timeout=config.request_timeout_seconds,
                http_transport=http_transport,
            ),
            PendingQueue(
                persistent,
                key=f"{prefix}pending_events",
                capacity=config.pending_capacity,
                ttl=config.pending_ttl_seconds,
            ),
            clock=clock,
        )
        self.page_session = PageSession(entry_time=clock())
        self.capture = EventCapture(
            config,
            page,
            self.page_session,
            track=self.track,
            on_visible=self.drain_pending,
            clock=clock,
            rng=rng,
        )
        self.applicator = ContentApplicator(mutator) if mutator is not None else None
        # Separate from the delivery client so rule responses never leave cookies for it
        self.rules = RuleClient(
            config.rules_url,
            client=httpx.AsyncClient(transport=http_transport, timeout=config.request_timeout_seconds),
        )

        self._stop = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._unsubscribe_navigation: Optional[Callable[[], None]] = None
        self._started = False

        if not config.delivery_enabled:
            logger.warning("Tracking endpoint not configured; events will not be sent")

    # --- Lifecycle ---

    async def start(self) -> Optional[ApplyReport]:
        """Run the page-load sequence and start the background loops."""
        if self._started:
            return None
        self._started = True

        self.attribution.record_incoming(parse_attribution(self.page.url))
        # Attribution from a client-side navigation is recorded before its pageview
        self._unsubscribe_navigation = self.bus.subscribe(dispatch.NAVIGATION, self._record_navigation)
        self.capture.attach(self.bus)

        await self.capture.track_pageview()
        report = await self.apply_rules()

        self._stop.clear()
        self._tasks.append(asyncio.create_task(
            self.identity.run_heartbeat(self._stop, interval=self.config.heartbeat_seconds)
        ))
        if self.config.track_mouse_movement:
            self._tasks.append(asyncio.create_task(self.capture.run_mouse_flusher(self._stop)))
        return report

    async def stop(self) -> None:
        """Stop background loops, flush pointer samples and drop subscriptions."""
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()

        await self.capture.flush_mouse()
        self.capture.detach()
        if self.applicator is not None:
            self.applicator.stop()
        if self._unsubscribe_navigation is not None:
            self._unsubscribe_navigation()
            self._unsubscribe_navigation = None
        self._started = False

    async def aclose(self) -> None:
        """Stop and close the HTTP clients."""
        await self.stop()
        await self.rules.aclose()
        for transport in self.delivery.transports:
            if isinstance(transport, KeepAliveFetchTransport):
                await transport.aclose()

    async def _record_navigation(self, signal: NavigationSignal) -> None:
        self.attribution.record_incoming(parse_attribution(signal.url))

    # --- Signals from the host ---

    async def dispatch(self, name: str, signal: Any) -> None:
        await self.bus.dispatch(name, signal)

    # --- Tracking ---

    def current_attribution(self) -> Dict[str, str]:
        return self.attribution.current(parse_attribution(self.page.url))

    def enrich(self, event: BaseEvent) -> Dict[str, Any]:
        """Merge identity, session, attribution and device fields into the event."""
        enriched: Dict[str, Any] = {
            "client_id": self.identity.get_client_id(),
            "session_id": self.identity.get_session_id(),
            "journey_id": self.identity.get_journey_id(),
            "visit_count": self.identity.visit_count,
            "screen_width": self.page.viewport_width,
            "screen_height": self.page.viewport_height,
            "user_agent": self.page.user_agent,
            "referrer": self.page.referrer,
            "language": self.page.language,
        }
        enriched.update(self.current_attribution())
        enriched.update(event.to_payload())
        return {key: value for key, value in enriched.items() if value is not None}

    async def track(self, event: Union[BaseEvent, Dict[str, Any]]) -> Optional[DeliveryResult]:
        """
        Enrich and deliver one event. Events forwarded by the host as plain
        dicts are parsed by their event_type first; a dict that matches no
        event type raises ValidationError. Transport failures queue the
        event and are never raised to the caller.
        """
        if isinstance(event, dict):
            event = EVENT_ADAPTER.validate_python(event)
        payload = self.enrich(event)
        if not self.config.delivery_enabled:
            logger.debug(f"Skipping {payload.get('event_type')} event; delivery disabled")
            return None
        return await self.delivery.deliver(payload)

    async def track_custom(self, event_name: str, properties: Optional[Dict[str, Any]] = None) -> Optional[DeliveryResult]:
        return await self.capture.track_custom(event_name, properties)

    async def drain_pending(self) -> int:
        if not self.config.delivery_enabled:
            return 0
        return await self.delivery.drain_pending()

    # --- Content rules ---

    async def apply_rules(self) -> Optional[ApplyReport]:
        """Fetch the rules for the current attribution, apply them and watch for new buttons."""
        if self.applicator is None:
            return None

        attribution = self.current_attribution()
        rules = await self.rules.fetch(attribution, page_url=self.page.url)
        if not rules:
            return ApplyReport()

        report = self.applicator.apply(rules, attribution)
        logger.info(f"Applied {report.matched_rules} rule(s) to {report.updated} element(s)")
        self.applicator.watch(rules, attribution)
        return report
