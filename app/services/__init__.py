"""Racker services."""

from app.services.attribution import (
    AttributionRecorder,
    AttributionService,
    FeedbackHandler,
)
from app.services.confidence import ConfidenceResult, ConfidenceScorer
from app.services.record_store import RecordStore, SqlRecordStore
from app.services.resolver import CandidateMatch, CandidateResolver
from app.services.strategies import (
    ExplicitLinkStrategy,
    IpFallbackStrategy,
    MatchingStrategy,
    Signal,
    TrackerIdentityStrategy,
)
from app.services.tracking import TrackingService

__all__ = [
    "AttributionRecorder",
    "AttributionService",
    "FeedbackHandler",
    "ConfidenceResult",
    "ConfidenceScorer",
    "RecordStore",
    "SqlRecordStore",
    "CandidateMatch",
    "CandidateResolver",
    "MatchingStrategy",
    "TrackerIdentityStrategy",
    "ExplicitLinkStrategy",
    "IpFallbackStrategy",
    "Signal",
    "TrackingService",
]
