"""SQLAlchemy models for Racker."""

from app.models.conversion import AttributionResult, ConversionEvent, FeedbackStatus
from app.models.tracking import LinkClick, PageView, TrackingLink

__all__ = [
    "TrackingLink",
    "LinkClick",
    "PageView",
    "ConversionEvent",
    "AttributionResult",
    "FeedbackStatus",
]
