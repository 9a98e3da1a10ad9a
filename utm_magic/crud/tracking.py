"""Event Store operations: one writer per storage shape."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from ..models import UTMTracking, JourneyTracking, ClickTracking, MouseTracking


def client_has_visited(db: Session, client_id: str) -> bool:
    """Return True when any pageview-shape record exists for this client."""
    existing = (
        db.query(UTMTracking.client_id)
        .filter(UTMTracking.client_id == client_id)
        .limit(1)
        .first()
    )
    return existing is not None


def create_utm_tracking(db: Session, **fields: Any) -> UTMTracking:
    """Insert a pageview-shape record."""
    record = UTMTracking(**fields)
    db.add(record)
    db.commit()
    return record


def create_journey_step(db: Session, **fields: Any) -> JourneyTracking:
    """Insert a journey record."""
    record = JourneyTracking(**fields)
    db.add(record)
    db.commit()
    return record


def create_click(
    db: Session,
    timestamp: datetime,
    client_id: Optional[str] = None,
    session_id: Optional[str] = None,
    journey_id: Optional[str] = None,
    page_url: Optional[str] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    element_selector: Optional[str] = None,
    element_text: Optional[str] = None,
    element_tag: Optional[str] = None,
    element_href: Optional[str] = None,
    element_section: Optional[Dict[str, Any]] = None,
) -> ClickTracking:
    """Insert a click record."""
    record = ClickTracking(
        client_id=client_id,
        session_id=session_id,
        journey_id=journey_id,
        page_url=page_url,
        x=round(x) if x is not None else None,
        y=round(y) if y is not None else None,
        element_selector=element_selector,
        element_text=element_text[:100] if element_text else element_text,
        element_tag=element_tag,
        element_href=element_href,
        element_section=element_section,
        timestamp=timestamp,
    )
    db.add(record)
    db.commit()
    return record


def create_mouse_movement(
    db: Session,
    timestamp: datetime,
    coordinates: List[Dict[str, float]],
    client_id: Optional[str] = None,
    session_id: Optional[str] = None,
    journey_id: Optional[str] = None,
    page_url: Optional[str] = None,
    viewport_width: Optional[int] = None,
    viewport_height: Optional[int] = None,
) -> MouseTracking:
    """Insert a mouse-movement batch."""
    record = MouseTracking(
        client_id=client_id,
        session_id=session_id,
        journey_id=journey_id,
        page_url=page_url,
        coordinates=coordinates,
        viewport_width=viewport_width,
        viewport_height=viewport_height,
        timestamp=timestamp,
    )
    db.add(record)
    db.commit()
    return record
