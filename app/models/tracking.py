"""Tracking link, click and page view models.

These are the inputs to attribution: a click on a tracked link, and page
views that tie a tracker cookie back to the link it arrived through.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base
from app.timeutils import utcnow


class TrackingLink(Base):
    """
    A short link an owner shares on social platforms.

    Visiting /api/track/{slug} records a LinkClick and redirects to
    destination_url. The owner of the link owns every attribution
    resolved to it.
    """

    __tablename__ = "tracking_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False)

    slug = Column(String(64), nullable=False, unique=True)
    destination_url = Column(Text, nullable=False)
    campaign = Column(Text)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    clicks = relationship("LinkClick", back_populates="tracking_link")
    page_views = relationship("PageView", back_populates="tracking_link")

    __table_args__ = (
        Index("idx_tracking_links_owner", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<TrackingLink {self.slug} -> {self.destination_url}>"


class LinkClick(Base):
    """A recorded click on a tracked link. Immutable once written."""

    __tablename__ = "link_clicks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tracking_link_id = Column(
        UUID(as_uuid=True), ForeignKey("tracking_links.id"), nullable=False
    )

    clicked_at = Column(DateTime, default=utcnow, nullable=False)

    # Visitor identity
    ip_address = Column(Text)
    tracker_id = Column(Text)  # rckr_id cookie

    # Request metadata
    referrer_url = Column(Text)
    user_agent = Column(Text)
    device_type = Column(String(20))  # mobile, desktop, tablet

    # Campaign parameters forwarded on the short link
    utm_source = Column(Text)
    utm_medium = Column(Text)
    utm_campaign = Column(Text)
    utm_term = Column(Text)
    utm_content = Column(Text)

    # Relationships
    tracking_link = relationship("TrackingLink", back_populates="clicks")

    __table_args__ = (
        Index("idx_link_clicks_link_time", "tracking_link_id", "clicked_at"),
        Index("idx_link_clicks_ip_time", "ip_address", "clicked_at"),
    )

    def __repr__(self) -> str:
        return f"<LinkClick {self.id} at {self.clicked_at}>"


class PageView(Base):
    """A page visit on a destination site, reported by the tracking script."""

    __tablename__ = "page_views"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tracker_id = Column(Text, nullable=False)
    tracking_link_id = Column(UUID(as_uuid=True), ForeignKey("tracking_links.id"))

    session_id = Column(Text)
    fingerprint = Column(Text)

    page_url = Column(Text, nullable=False)
    page_title = Column(Text)
    referrer_url = Column(Text)

    ip_address = Column(Text)
    user_agent = Column(Text)
    device_type = Column(String(20))

    viewed_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    tracking_link = relationship("TrackingLink", back_populates="page_views")

    __table_args__ = (
        Index("idx_page_views_tracker_time", "tracker_id", "viewed_at"),
    )

    def __repr__(self) -> str:
        return f"<PageView {self.tracker_id} on {self.page_url}>"
