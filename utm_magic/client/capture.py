"""Event Capture: turns page signals into typed tracking events."""

import asyncio
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import dispatch
from .config import TrackerConfig
from .dispatch import (
    ClickSignal,
    ElementInfo,
    EventBus,
    MouseMoveSignal,
    NavigationSignal,
    ScrollSignal,
    SectionBox,
    SubmitSignal,
    VisibilitySignal,
)
from .events import (
    BaseEvent,
    ClickEvent,
    CustomEvent,
    FormField,
    FormSubmitEvent,
    MouseMovementEvent,
    PageviewEvent,
    ScrollDepthEvent,
    SectionViewEvent,
    iso_timestamp,
)
from .page_session import MouseBuffer, PageContext, PageSession

logger = logging.getLogger(__name__)

TrackFn = Callable[[BaseEvent], Awaitable[Any]]

CLICKABLE_TAGS = ("a", "button")
CLICKABLE_CLASSES = ("btn", "button")
TEXT_LIMIT = 100


def find_click_target(target: ElementInfo) -> ElementInfo:
    """The nearest clickable ancestor of the clicked element, or the element itself."""
    for node in target.ancestors():
        if node.tag == "body":
            break
        if (
            node.tag in CLICKABLE_TAGS
            or node.attributes.get("role") == "button"
            or "data-track-click" in node.attributes
            or any(cls in node.classes for cls in CLICKABLE_CLASSES)
        ):
            return node
    return target


def element_selector(element: ElementInfo) -> str:
    if element.id:
        return "#" + element.id
    if element.classes:
        return "." + ".".join(element.classes)
    return element.tag


def enclosing_section(element: ElementInfo) -> Optional[Dict[str, Optional[str]]]:
    for node in element.ancestors():
        if node.tag == "body":
            break
        if node.tag == "section" or "data-section" in node.attributes or node.id:
            return {
                "id": node.id or None,
                "type": node.tag,
                "classes": " ".join(node.classes) or None,
            }
    return None


def scroll_depth_percent(signal: ScrollSignal) -> int:
    track_length = signal.document_height - signal.viewport_height
    if track_length <= 0:
        return 100
    return int(math.floor(signal.scroll_top / track_length * 100))


def most_visible_section(sections: List[SectionBox], viewport_height: float) -> Optional[SectionBox]:
    """The section with the largest visible share, if more than half of it shows."""
    best, best_visibility = None, 0.5
    for section in sections:
        if section.height <= 0 or section.top >= viewport_height or section.bottom < 0:
            continue
        visible = min(viewport_height, section.bottom) - max(0.0, section.top)
        visibility = visible / section.height
        if visibility > best_visibility:
            best, best_visibility = section, visibility
    return best


class EventCapture:
    """Subscribes to page signals and emits the matching events."""

    def __init__(
        self,
        config: TrackerConfig,
        page: PageContext,
        page_session: PageSession,
        track: TrackFn,
        on_visible: Optional[Callable[[], Awaitable[Any]]] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.page = page
        self.page_session = page_session
        self.track = track
        self.on_visible = on_visible
        self.clock = clock
        buffer_args = {"rng": rng} if rng is not None else {}
        self.mouse_buffer = MouseBuffer(
            sample_rate=config.sample_rate,
            batch_size=config.mouse_batch_size,
            **buffer_args,
        )
        self._unsubscribers: List[Callable[[], None]] = []

    def attach(self, bus: EventBus) -> None:
        """Subscribe to the signals enabled by the configuration."""
        subscriptions = [
            (dispatch.NAVIGATION, self.handle_navigation),
            (dispatch.VISIBILITY, self.handle_visibility),
            (dispatch.PAGE_HIDE, self.handle_page_hide),
        ]
        if self.config.track_clicks:
            subscriptions.append((dispatch.CLICK, self.handle_click))
        if self.config.track_forms:
            subscriptions.append((dispatch.SUBMIT, self.handle_submit))
        if self.config.track_scrolls:
            subscriptions.append((dispatch.SCROLL, self.handle_scroll))
        if self.config.track_mouse_movement:
            subscriptions.append((dispatch.MOUSE_MOVE, self.handle_mouse_move))

        for name, handler in subscriptions:
            self._unsubscribers.append(bus.subscribe(name, handler))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _common(self) -> Dict[str, Any]:
        return {"page_url": self.page.url, "timestamp": iso_timestamp(self.clock())}

    # --- Pageviews ---

    async def track_pageview(self) -> Any:
        previous, sequence, time_on_previous = self.page_session.next_pageview(self.page.url, self.clock())
        event = PageviewEvent(
            **self._common(),
            page_title=self.page.title,
            previous_page_url=previous,
            page_sequence=sequence,
            time_on_previous_page=time_on_previous,
        )
        return await self.track(event)

    async def handle_navigation(self, signal: NavigationSignal) -> None:
        self.page.url = signal.url
        if signal.title is not None:
            self.page.title = signal.title
        await self.track_pageview()

    # --- Clicks and forms ---

    async def handle_click(self, signal: ClickSignal) -> None:
        target = find_click_target(signal.target)
        text = target.text.strip()[:TEXT_LIMIT] if target.text else None
        event = ClickEvent(
            **self._common(),
            x=signal.x,
            y=signal.y,
            element_selector=element_selector(target),
            element_text=text or None,
            element_href=target.attributes.get("href") if target.tag == "a" else None,
            element_section=enclosing_section(target),
            element_tag=target.tag,
            element_classes=" ".join(target.classes) or None,
        )
        await self.track(event)

    async def handle_submit(self, signal: SubmitSignal) -> None:
        form = signal.form
        # Field names and types only, never values
        fields = [FormField(name=name, type=kind) for name, kind in form.fields if name]
        event = FormSubmitEvent(
            **self._common(),
            form_id=form.id,
            form_action=form.action,
            form_classes=form.classes,
            form_fields=fields,
        )
        await self.track(event)

    # --- Scrolling ---

    async def handle_scroll(self, signal: ScrollSignal) -> None:
        if not self.page_session.scroll_check_due(self.clock(), self.config.scroll_throttle_seconds):
            return

        depth = scroll_depth_percent(signal)
        if self.page_session.crossed_threshold(depth):
            await self.track(ScrollDepthEvent(**self._common(), scroll_depth=self.page_session.scroll_depth))

        section = most_visible_section(signal.sections, signal.viewport_height)
        if section and self.page_session.enter_section(section.id):
            await self.track(SectionViewEvent(
                **self._common(),
                section_id=section.id,
                section_classes=section.classes,
            ))

    # --- Pointer movement ---

    async def handle_mouse_move(self, signal: MouseMoveSignal) -> None:
        elapsed_ms = (self.clock() - self.page_session.entry_time) * 1000
        if self.mouse_buffer.add(signal.x, signal.y, elapsed_ms):
            await self.flush_mouse()

    async def flush_mouse(self) -> Any:
        """Send buffered samples as one event; an empty buffer sends nothing."""
        samples = self.mouse_buffer.drain()
        if not samples:
            return None
        return await self.track(MouseMovementEvent(**self._common(), coordinates=samples))

    async def run_mouse_flusher(self, stop: asyncio.Event) -> None:
        """Flush pointer samples every `mouse_flush_seconds` until stopped."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.config.mouse_flush_seconds)
            except asyncio.TimeoutError:
                await self.flush_mouse()

    # --- Page lifecycle ---

    async def handle_visibility(self, signal: VisibilitySignal) -> None:
        if signal.visible:
            if self.on_visible is not None:
                await self.on_visible()
        else:
            await self.flush_mouse()

    async def handle_page_hide(self, signal) -> None:
        await self.flush_mouse()

    # --- Host-page events ---

    async def track_custom(self, event_name: str, properties: Optional[Dict[str, Any]] = None) -> Any:
        return await self.track(CustomEvent(**self._common(), event_name=event_name, properties=properties or {}))
