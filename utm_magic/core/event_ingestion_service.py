"""Event Ingestion Router - routes tracking events to their storage shape."""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..schemas import EventType

logger = logging.getLogger(__name__)


# Missing-column error messages, per backend
_MISSING_COLUMN_PATTERNS = [
    re.compile(r'column "?(\w+)"? of relation "?\w+"? does not exist'),   # PostgreSQL insert
    re.compile(r'column "?(?:\w+\.)?(\w+)"? does not exist'),             # PostgreSQL select
    re.compile(r"has no column named (\w+)"),                             # SQLite insert
    re.compile(r"no such column: (?:\w+\.)?(\w+)"),                       # SQLite select
    re.compile(r"Unknown column '(?:\w+\.)?(\w+)'"),                      # MySQL
]


class SchemaMismatchError(Exception):
    """The Event Store rejected fields this engine writes."""

    def __init__(self, missing_columns: List[str]):
        self.missing_columns = missing_columns
        super().__init__(
            f"Schema error: Missing columns: {', '.join(missing_columns)}. "
            "Please update your database schema."
        )


def find_missing_columns(exc: Exception) -> Optional[List[str]]:
    """Return the offending column names when exc is a missing-column error."""
    message = str(getattr(exc, "orig", None) or exc)
    if "column" not in message.lower():
        return None

    missing: List[str] = []
    for pattern in _MISSING_COLUMN_PATTERNS:
        for found in pattern.findall(message):
            if found not in missing:
                missing.append(found)
    return missing or None


class EventIngestionService:
    """Classifies inbound events and writes each to the right table."""

    def __init__(self, db: Session):
        self.db = db

    def ingest(self, payload: schemas.TrackingPayload, received_at: Optional[datetime] = None) -> schemas.TrackingAck:
        """
        Store one tracking event and acknowledge it.
        Raises SchemaMismatchError for missing columns; other storage errors
        propagate unchanged.
        """
        timestamp = received_at or datetime.now(timezone.utc)
        event_type = payload.event_type or EventType.PAGEVIEW.value

        try:
            if event_type == EventType.CLICK.value:
                self._store_click(payload, timestamp)
            elif event_type == EventType.MOUSE_MOVEMENT.value:
                self._store_mouse_movement(payload, timestamp)
            else:
                self._store_pageview(payload, event_type, timestamp)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database insert error for {event_type} event: {e}")
            missing = find_missing_columns(e)
            if missing:
                raise SchemaMismatchError(missing) from e
            raise

        return schemas.TrackingAck(event_type=event_type, timestamp=timestamp)

    def _store_click(self, payload: schemas.TrackingPayload, timestamp: datetime) -> None:
        crud.create_click(
            self.db,
            timestamp=timestamp,
            client_id=payload.client_id,
            session_id=payload.session_id,
            journey_id=payload.journey_id,
            page_url=payload.page_url,
            x=payload.x,
            y=payload.y,
            element_selector=payload.element_selector,
            element_text=payload.element_text,
            element_tag=payload.element_tag,
            element_href=payload.element_href,
            element_section=payload.element_section,
        )

    def _store_mouse_movement(self, payload: schemas.TrackingPayload, timestamp: datetime) -> None:
        coordinates = [sample.model_dump() for sample in payload.coordinates or []]
        crud.create_mouse_movement(
            self.db,
            timestamp=timestamp,
            coordinates=coordinates,
            client_id=payload.client_id,
            session_id=payload.session_id,
            journey_id=payload.journey_id,
            page_url=payload.page_url,
            viewport_width=payload.screen_width,
            viewport_height=payload.screen_height,
        )

    def _store_pageview(self, payload: schemas.TrackingPayload, event_type: str, timestamp: datetime) -> None:
        first_visit = self._is_first_visit(payload.client_id)
        utm_fields = {field: getattr(payload, field) for field in schemas.ATTRIBUTION_FIELDS}

        primary_error: Optional[SQLAlchemyError] = None
        try:
            crud.create_utm_tracking(
                self.db,
                **utm_fields,
                page_url=payload.page_url,
                page_title=payload.page_title,
                referrer=payload.referrer,
                ip_address=payload.ip_address,
                user_agent=payload.user_agent,
                client_id=payload.client_id,
                session_id=payload.session_id,
                journey_id=payload.journey_id,
                first_visit=first_visit,
                is_direct=not payload.utm_source and not payload.referrer,
                visit_count=payload.visit_count or 1,
                event_type=event_type,
                properties=payload.model_extra or None,
                timestamp=timestamp,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            primary_error = e

        # The journey step is written whether or not the primary write worked
        if payload.journey_id and event_type == EventType.PAGEVIEW.value:
            try:
                crud.create_journey_step(
                    self.db,
                    **utm_fields,
                    client_id=payload.client_id,
                    session_id=payload.session_id,
                    journey_id=payload.journey_id,
                    previous_page_url=payload.previous_page_url,
                    page_url=payload.page_url,
                    page_title=payload.page_title,
                    page_sequence=payload.page_sequence or 1,
                    time_on_previous_page=payload.time_on_previous_page,
                    first_visit=first_visit,
                    timestamp=timestamp,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error inserting journey data: {e}")

        if primary_error is not None:
            raise primary_error

    def _is_first_visit(self, client_id: Optional[str]) -> bool:
        """A client with no prior record is on its first visit."""
        if not client_id:
            return True
        try:
            return not crud.client_has_visited(self.db, client_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error looking up client {client_id}: {e}")
            return True
