# models.py
# Table definitions for the Rule Store and the Event Store. The engine only
# reads and writes the fields listed here.

import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Uuid, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .core.database import Base


class ContentRule(Base):
    """
    Blueprint for the 'content_rules' table.
    A selector + condition + replacement triple used to personalize pages.
    """
    __tablename__ = "content_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, nullable=True)
    selector = Column(String, nullable=False)
    condition_type = Column(String(50), nullable=False, index=True)  # utm_source, utm_medium, ...
    condition_value = Column(String, nullable=False)
    replacement_content = Column(Text, nullable=False, default="")
    active = Column(Boolean, default=True, index=True)
    usage_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    usages = relationship("RuleUsage", back_populates="rule")


class RuleUsage(Base):
    """
    Blueprint for the 'rule_usage' table.
    One row per rule per matching request; rows are never deduplicated.
    """
    __tablename__ = "rule_usage"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    rule_id = Column(Uuid, ForeignKey("content_rules.id"), nullable=False, index=True)
    condition_type = Column(String(50))
    condition_value = Column(String)
    page_url = Column(String, nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now())

    rule = relationship("ContentRule", back_populates="usages")


class UTMTracking(Base):
    """
    Blueprint for the 'utm_tracking' table.
    Pageviews land here, along with scroll, form, section and custom events.
    """
    __tablename__ = "utm_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    utm_source = Column(String, nullable=True, index=True)
    utm_medium = Column(String, nullable=True)
    utm_campaign = Column(String, nullable=True, index=True)
    utm_term = Column(String, nullable=True)
    utm_content = Column(String, nullable=True)
    page_url = Column(String, nullable=True)
    page_title = Column(String, nullable=True)
    referrer = Column(String, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String, nullable=True)
    client_id = Column(String(100), nullable=True, index=True)
    session_id = Column(String(100), nullable=True, index=True)
    journey_id = Column(String(100), nullable=True)
    first_visit = Column(Boolean, default=False)
    is_direct = Column(Boolean, default=False)
    visit_count = Column(Integer, default=1)
    event_type = Column(String(50), nullable=False, default="pageview", index=True)
    properties = Column(JSON, nullable=True)  # type-specific fields for non-pageview events
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_utm_tracking_client_timestamp", "client_id", "timestamp"),
    )


class JourneyTracking(Base):
    """
    Blueprint for the 'journey_tracking' table.
    Page-to-page navigation steps within one browsing session.
    """
    __tablename__ = "journey_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    client_id = Column(String(100), nullable=True, index=True)
    session_id = Column(String(100), nullable=True)
    journey_id = Column(String(100), nullable=False, index=True)
    previous_page_url = Column(String, nullable=True)
    page_url = Column(String, nullable=True)
    page_title = Column(String, nullable=True)
    page_sequence = Column(Integer, default=1)
    time_on_previous_page = Column(Integer, nullable=True)  # milliseconds
    first_visit = Column(Boolean, default=False)
    utm_source = Column(String, nullable=True)
    utm_medium = Column(String, nullable=True)
    utm_campaign = Column(String, nullable=True)
    utm_term = Column(String, nullable=True)
    utm_content = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)


class ClickTracking(Base):
    """Blueprint for the 'click_tracking' table."""
    __tablename__ = "click_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    client_id = Column(String(100), nullable=True, index=True)
    session_id = Column(String(100), nullable=True)
    journey_id = Column(String(100), nullable=True)
    page_url = Column(String, nullable=True)
    x = Column(Integer, nullable=True)
    y = Column(Integer, nullable=True)
    element_selector = Column(String, nullable=True)
    element_text = Column(String(100), nullable=True)
    element_tag = Column(String(50), nullable=True)
    element_href = Column(String, nullable=True)
    element_section = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)


class MouseTracking(Base):
    """Blueprint for the 'mouse_tracking' table."""
    __tablename__ = "mouse_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    client_id = Column(String(100), nullable=True, index=True)
    session_id = Column(String(100), nullable=True)
    journey_id = Column(String(100), nullable=True)
    page_url = Column(String, nullable=True)
    coordinates = Column(JSON, nullable=True)  # [{x, y, t}, ...]
    viewport_width = Column(Integer, nullable=True)
    viewport_height = Column(Integer, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
