"""Typed tracking events built by the capture layer.

Capture code fills in the type-specific fields; `Tracker.track` adds the
identity, session, attribution and device fields before delivery.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def iso_timestamp(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


class BaseEvent(BaseModel):
    """Fields common to every event."""
    model_config = ConfigDict(extra="allow")

    client_id: Optional[str] = None
    session_id: Optional[str] = None
    journey_id: Optional[str] = None
    page_url: Optional[str] = None
    timestamp: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PageviewEvent(BaseEvent):
    event_type: Literal["pageview"] = "pageview"
    page_title: Optional[str] = None
    previous_page_url: Optional[str] = None
    page_sequence: int = 1
    time_on_previous_page: Optional[int] = None  # milliseconds


class ClickEvent(BaseEvent):
    event_type: Literal["click"] = "click"
    x: float
    y: float
    element_selector: str
    element_text: Optional[str] = None
    element_href: Optional[str] = None
    element_section: Optional[Dict[str, Any]] = None
    element_tag: Optional[str] = None
    element_classes: Optional[str] = None


class ScrollDepthEvent(BaseEvent):
    event_type: Literal["scroll_depth"] = "scroll_depth"
    scroll_depth: int


class FormField(BaseModel):
    name: str
    type: str


class FormSubmitEvent(BaseEvent):
    event_type: Literal["form_submit"] = "form_submit"
    form_id: Optional[str] = None
    form_action: Optional[str] = None
    form_classes: Optional[str] = None
    form_fields: List[FormField] = []


class MouseSample(BaseModel):
    x: float
    y: float
    t: float  # milliseconds since page entry


class MouseMovementEvent(BaseEvent):
    event_type: Literal["mouse_movement"] = "mouse_movement"
    coordinates: List[MouseSample]


class SectionViewEvent(BaseEvent):
    event_type: Literal["section_view"] = "section_view"
    section_id: str
    section_classes: Optional[str] = None


class CustomEvent(BaseEvent):
    event_type: Literal["custom"] = "custom"
    event_name: str
    properties: Dict[str, Any] = {}


TrackingEvent = Annotated[
    Union[
        PageviewEvent,
        ClickEvent,
        ScrollDepthEvent,
        FormSubmitEvent,
        MouseMovementEvent,
        SectionViewEvent,
        CustomEvent,
    ],
    Field(discriminator="event_type"),
]
