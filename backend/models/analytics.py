# backend/models/analytics.py
from __future__ import annotations

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from backend.db.base import Base, utcnow

EVENT_TYPES = (
    "page_view",
    "click",
    "scroll",
    "form_start",
    "form_submit",
    "time_on_page",
    "exit",
)


class AnalyticsSession(Base):
    __tablename__ = "analytics_sessions"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(64), nullable=False, unique=True)
    visitor_id = Column(String(64), index=True)

    ip_address = Column(String(45))
    user_agent = Column(String(500))
    referrer = Column(String(500))
    landing_page = Column(String(500))

    device_type = Column(String(20))
    browser = Column(String(50))
    os = Column(String(50))

    started_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    ended_at = Column(DateTime(timezone=True))
    page_views = Column(Integer, nullable=False, default=0, server_default="0")
    total_time_seconds = Column(Integer, nullable=False, default=0, server_default="0")

    events = relationship("AnalyticsEvent", back_populates="session", passive_deletes=True)

    __table_args__ = (
        Index("idx_analytics_sessions_started_at", "started_at"),
        CheckConstraint("page_views >= 0", name="check_page_views_non_negative"),
        CheckConstraint("total_time_seconds >= 0", name="check_time_non_negative"),
    )


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        String(64),
        ForeignKey("analytics_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(String(50), nullable=False)
    event_data = Column(JSON)

    page_url = Column(String(500))
    element_id = Column(String(100))
    element_class = Column(String(200))
    element_text = Column(Text)
    x_position = Column(Integer)
    y_position = Column(Integer)
    scroll_depth = Column(Integer)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    session = relationship("AnalyticsSession", back_populates="events")

    __table_args__ = (
        Index("idx_analytics_events_session", "session_id"),
        Index("idx_analytics_events_type", "event_type"),
        Index("idx_analytics_events_created_at", "created_at"),
        CheckConstraint(
            "scroll_depth IS NULL OR (scroll_depth >= 0 AND scroll_depth <= 100)",
            name="check_scroll_depth_range",
        ),
    )
