"""Pydantic wire shapes shared by the HTTP API and the client engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import uuid

from pydantic import BaseModel, ConfigDict, Field, validator


class AttributionField(str, Enum):
    """
    The campaign parameters that drive attribution and rule conditions.
    Values are the query-string names used on the wire.
    """
    UTM_SOURCE = "utm_source"
    UTM_MEDIUM = "utm_medium"
    UTM_CAMPAIGN = "utm_campaign"
    UTM_TERM = "utm_term"
    UTM_CONTENT = "utm_content"


ATTRIBUTION_FIELDS = tuple(f.value for f in AttributionField)


class EventType(str, Enum):
    """
    The tracking event variants.
    - PAGEVIEW: a page (or client-side route) was viewed.
    - CLICK: an element was clicked.
    - SCROLL_DEPTH: a scroll-depth threshold was crossed.
    - FORM_SUBMIT: a form was submitted (field names only).
    - MOUSE_MOVEMENT: a batch of sampled pointer positions.
    - SECTION_VIEW: a new section became the most visible one.
    - CUSTOM: a named event tracked by the host page.
    """
    PAGEVIEW = "pageview"
    CLICK = "click"
    SCROLL_DEPTH = "scroll_depth"
    FORM_SUBMIT = "form_submit"
    MOUSE_MOVEMENT = "mouse_movement"
    SECTION_VIEW = "section_view"
    CUSTOM = "custom"


# Older embed snippets posted pointer batches under this name
LEGACY_EVENT_ALIASES = {"mousemove": EventType.MOUSE_MOVEMENT.value}


# --- Content rules ---

class ContentRule(BaseModel):
    """A personalization rule as served to the client engine."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    selector: str
    condition_type: str
    condition_value: str
    replacement_content: str = ""
    active: bool = True


class RulesResponse(BaseModel):
    """Response body of the rule query endpoint."""
    rules: List[ContentRule] = []
    params: Dict[str, str] = {}
    referrer: Optional[str] = None


# --- Tracking ingestion ---

class MouseSample(BaseModel):
    """One sampled pointer position; t is milliseconds since page entry."""
    x: float
    y: float
    t: float


class TrackingPayload(BaseModel):
    """
    The JSON body posted by the client engine.
    Every field is optional so that older or partial payloads are still
    accepted; unknown fields are kept and folded into `properties`.
    """
    model_config = ConfigDict(extra="allow")

    event_type: str = EventType.PAGEVIEW.value

    # Identity
    client_id: Optional[str] = None
    session_id: Optional[str] = None
    journey_id: Optional[str] = None
    visit_count: Optional[int] = None

    # Page
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    referrer: Optional[str] = None
    previous_page_url: Optional[str] = None
    page_sequence: Optional[int] = None
    time_on_previous_page: Optional[int] = None

    # Attribution
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None

    # Click
    x: Optional[float] = None
    y: Optional[float] = None
    element_selector: Optional[str] = None
    element_text: Optional[str] = None
    element_tag: Optional[str] = None
    element_href: Optional[str] = None
    element_section: Optional[Dict[str, Any]] = None

    # Mouse movement
    coordinates: Optional[List[MouseSample]] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None

    # Server-side enrichment
    ip_address: Optional[str] = Field(None, max_length=45)
    user_agent: Optional[str] = None
    timestamp: Optional[Union[datetime, str]] = None

    @validator("event_type", pre=True, always=True)
    def normalize_event_type(cls, v):
        """Lower-case the event type and default it to 'pageview'."""
        if not v:
            return EventType.PAGEVIEW.value
        v = str(v).strip().lower()
        return LEGACY_EVENT_ALIASES.get(v, v)

    @validator("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "referrer", pre=True)
    def blank_to_none(cls, v):
        """Empty strings carry no attribution."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class TrackingAck(BaseModel):
    """Acknowledgement for a stored tracking event."""
    success: bool = True
    event_type: str
    timestamp: datetime


class TrackingError(BaseModel):
    """Failure body for the ingestion endpoint."""
    success: bool = False
    error: str
    timestamp: datetime
    error_code: Optional[str] = None
    missing_columns: Optional[List[str]] = None


def extract_attribution(params: Dict[str, Any]) -> Dict[str, str]:
    """Keep only the attribution fields that are present and non-empty."""
    attribution = {}
    for field in ATTRIBUTION_FIELDS:
        value = params.get(field)
        if isinstance(value, str) and value != "":
            attribution[field] = value
    return attribution


def condition_matches(condition_type: str, condition_value: str, attribution: Dict[str, Any]) -> bool:
    """
    A rule condition holds only when the attribution carries the named field
    and its value is exactly equal (case-sensitive) to the condition value.
    """
    value = attribution.get(condition_type)
    if value is None or value == "":
        return False
    return value == condition_value
