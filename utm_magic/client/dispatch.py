"""Subscription/dispatch of page signals.

The host forwards browser events (click, submit, scroll, pointer movement,
visibility, navigation, page hide) as plain signal objects; capture code
subscribes to them by name.
"""

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CLICK = "click"
SUBMIT = "submit"
SCROLL = "scroll"
MOUSE_MOVE = "mousemove"
VISIBILITY = "visibilitychange"
NAVIGATION = "navigation"
PAGE_HIDE = "pagehide"


@dataclass
class ElementInfo:
    """A read-only snapshot of a DOM element and its ancestors."""
    tag: str
    id: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    text: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    parent: Optional["ElementInfo"] = None

    def ancestors(self):
        """Yield this element and then each parent, innermost first."""
        node = self
        while node is not None:
            yield node
            node = node.parent


@dataclass
class ClickSignal:
    x: float
    y: float
    target: ElementInfo


@dataclass
class FormInfo:
    id: Optional[str] = None
    action: Optional[str] = None
    classes: Optional[str] = None
    fields: List[Tuple[str, str]] = field(default_factory=list)  # (name, type)


@dataclass
class SubmitSignal:
    form: FormInfo


@dataclass
class SectionBox:
    """A section's position relative to the viewport."""
    id: Optional[str]
    top: float
    bottom: float
    classes: Optional[str] = None

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass
class ScrollSignal:
    scroll_top: float
    document_height: float
    viewport_height: float
    sections: List[SectionBox] = field(default_factory=list)


@dataclass
class MouseMoveSignal:
    x: float
    y: float


@dataclass
class VisibilitySignal:
    visible: bool


@dataclass
class NavigationSignal:
    url: str
    title: Optional[str] = None


@dataclass
class PageHideSignal:
    pass


Handler = Callable[[Any], Any]


class EventBus:
    """Routes named signals to their subscribers."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; the returned callable removes it again."""
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[name]:
                self._handlers[name].remove(handler)

        return unsubscribe

    def subscriber_count(self, name: str) -> int:
        return len(self._handlers[name])

    async def dispatch(self, name: str, signal: Any) -> None:
        """Run every handler for `name`; one failing handler never stops the rest."""
        for handler in list(self._handlers[name]):
            try:
                result = handler(signal)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler for {name} failed: {e}", exc_info=True)
