"""Conversion and attribution result models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.timeutils import utcnow


class FeedbackStatus(str, Enum):
    """Human verdict on an attribution. CONFIRMED and REJECTED are terminal."""

    UNSET = "unset"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ConversionEvent(Base):
    """A form submission on a destination site. Immutable once recorded."""

    __tablename__ = "conversion_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    page_url: Mapped[str] = mapped_column(Text, nullable=False)

    # Identity hints supplied by the tracking script
    tracker_id: Mapped[str | None] = mapped_column(Text)
    link_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    fingerprint: Mapped[str | None] = mapped_column(Text)
    ip_address: Mapped[str | None] = mapped_column(Text)

    # Form metadata
    form_id: Mapped[str | None] = mapped_column(Text)
    form_name: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(Text)
    name: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[Any] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    attribution: Mapped["AttributionResult"] = relationship(
        "AttributionResult", back_populates="conversion", uselist=False
    )

    __table_args__ = (
        Index("idx_conversion_events_created", "created_at"),
    )


class AttributionResult(Base):
    """
    Outcome of attributing one ConversionEvent.

    Created exactly once per processed conversion. Scoring fields are never
    recomputed; only feedback_status / feedback_at change afterwards.
    """

    __tablename__ = "attribution_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    conversion_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("conversion_events.id"), nullable=False
    )
    click_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("link_clicks.id")
    )
    link_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tracking_links.id")
    )
    owner_id: Mapped[str | None] = mapped_column(Text)

    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # Example: ["tracker_id"]
    matched_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    time_since_click_minutes: Mapped[int | None] = mapped_column(Integer)

    feedback_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FeedbackStatus.UNSET.value
    )
    feedback_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    conversion: Mapped["ConversionEvent"] = relationship(
        "ConversionEvent", back_populates="attribution"
    )

    __table_args__ = (
        Index("idx_attribution_results_owner_created", "owner_id", "created_at"),
        Index("idx_attribution_results_conversion", "conversion_id"),
        Index("idx_attribution_results_link", "link_id"),
    )

    @property
    def attributed(self) -> bool:
        return self.click_id is not None
