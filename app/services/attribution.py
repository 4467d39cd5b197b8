"""Attribution service - ties resolver, scorer, recorder and feedback together.

Flow for a conversion:
    ConversionEvent -> CandidateResolver -> ConfidenceScorer -> AttributionRecorder

Every conversion that passes validation is persisted, matched or not.
Recording is not idempotent: resending an identical payload produces a
second result.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from app.exceptions import (
    ConflictError,
    NotFoundError,
    StoreError,
    UnexpectedError,
    ValidationError,
)
from app.models import AttributionResult, ConversionEvent, FeedbackStatus
from app.services.confidence import ConfidenceResult, ConfidenceScorer
from app.services.record_store import RecordStore
from app.services.resolver import CandidateMatch, CandidateResolver
from app.services.strategies import MatchingStrategy
from app.timeutils import utcnow

logger = logging.getLogger(__name__)


class AttributionRecorder:
    """Persist one immutable AttributionResult per processed conversion."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def record(
        self,
        conversion: ConversionEvent,
        match: CandidateMatch | None,
        confidence: ConfidenceResult,
    ) -> AttributionResult:
        link_id = match.click.tracking_link_id if match else None
        owner_id = await self._resolve_owner(link_id or conversion.link_id)

        result = AttributionResult(
            id=uuid.uuid4(),
            conversion_id=conversion.id,
            click_id=match.click.id if match else None,
            link_id=link_id,
            owner_id=owner_id,
            confidence_score=confidence.score,
            matched_by=[s.value for s in confidence.signals],
            time_since_click_minutes=confidence.elapsed_minutes,
            feedback_status=FeedbackStatus.UNSET.value,
            created_at=conversion.created_at,
        )
        result.conversion = conversion

        try:
            return await self.store.add_attribution(result)
        except Exception as e:
            logger.exception("Failed to persist conversion %s", conversion.id)
            raise UnexpectedError("Failed to track form conversion") from e

    async def _resolve_owner(self, link_id: uuid.UUID | None) -> str | None:
        """Owner of the link the conversion is tied to, if it can be found."""
        if link_id is None:
            return None
        try:
            link = await self.store.get_link(link_id)
        except StoreError as e:
            logger.warning("Could not resolve owner for link %s: %s", link_id, e.message)
            return None
        return link.owner_id if link else None


class FeedbackHandler:
    """Record a human confirm/reject verdict on an existing attribution."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def submit(
        self,
        attribution_id: uuid.UUID,
        confirmed: bool,
        owner_id: str,
    ) -> AttributionResult:
        """
        Mark an attribution confirmed or rejected.

        Raises:
            NotFoundError: attribution missing or owned by someone else
            ConflictError: a different verdict was already recorded
        """
        result = await self.store.get_attribution(attribution_id)
        if result is None or result.owner_id != owner_id:
            raise NotFoundError("Attribution not found")

        new_status = FeedbackStatus.CONFIRMED if confirmed else FeedbackStatus.REJECTED

        if result.feedback_status == new_status.value:
            return result
        if result.feedback_status != FeedbackStatus.UNSET.value:
            raise ConflictError(f"Attribution already {result.feedback_status}")

        # Only an unset attribution changes; a concurrent verdict may land first
        updated = await self.store.transition_feedback(
            attribution_id, new_status.value, utcnow()
        )
        if updated is None:
            raise NotFoundError("Attribution not found")
        if updated.feedback_status != new_status.value:
            raise ConflictError(f"Attribution already {updated.feedback_status}")

        logger.info("Feedback recorded for attribution %s: %s", updated.id, new_status.value)
        return updated


class AttributionService:
    """Entry point used by the API layer."""

    def __init__(
        self,
        store: RecordStore,
        strategies: list[MatchingStrategy] | None = None,
    ):
        self.store = store
        self.resolver = CandidateResolver(store, strategies)
        self.confidence_scorer = ConfidenceScorer()
        self.recorder = AttributionRecorder(store)
        self.feedback = FeedbackHandler(store)

    async def track_conversion(
        self,
        page_url: str | None,
        *,
        tracker_id: str | None = None,
        link_id: str | None = None,
        fingerprint: str | None = None,
        ip_address: str | None = None,
        form_id: str | None = None,
        form_name: str | None = None,
        email: str | None = None,
        name: str | None = None,
        phone: str | None = None,
        metadata: Any = None,
        received_at: datetime | None = None,
    ) -> AttributionResult:
        """
        Validate, attribute and record a form conversion.

        Returns the persisted AttributionResult (with .conversion attached).
        """
        if not page_url:
            raise ValidationError("pageUrl is required")

        conversion = ConversionEvent(
            id=uuid.uuid4(),
            page_url=page_url,
            tracker_id=tracker_id or None,
            link_id=_parse_link_id(link_id),
            fingerprint=fingerprint or None,
            ip_address=ip_address or None,
            form_id=form_id or None,
            form_name=form_name or None,
            email=email or None,
            name=name or None,
            phone=phone or None,
            extra_metadata=metadata,
            created_at=received_at or utcnow(),
        )

        match = await self.resolver.resolve(conversion)
        confidence = self.score_match(match, conversion.created_at)
        result = await self.recorder.record(conversion, match, confidence)

        logger.info(
            "Tracked conversion %s (confidence: %.0f%%)",
            result.id,
            confidence.score * 100,
        )
        return result

    def score_match(
        self, match: CandidateMatch | None, converted_at: datetime
    ) -> ConfidenceResult:
        if match is None:
            return self.confidence_scorer.score(None)
        elapsed = ConfidenceScorer.elapsed_minutes(match.click.clicked_at, converted_at)
        return self.confidence_scorer.score(match.signal, elapsed)

    async def submit_feedback(
        self, attribution_id: str, confirmed: bool, owner_id: str
    ) -> AttributionResult:
        return await self.feedback.submit(_parse_attribution_id(attribution_id), confirmed, owner_id)

    async def get_attribution(self, attribution_id: str, owner_id: str) -> AttributionResult:
        result = await self.store.get_attribution(_parse_attribution_id(attribution_id))
        if result is None or result.owner_id != owner_id:
            raise NotFoundError("Attribution not found")
        return result

    async def list_attributions(
        self,
        owner_id: str,
        status: str = "all",
        link_id: str | None = None,
        days: int = 30,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List the owner's attributions newest first, with pagination info."""
        if status != "all" and status not in {s.value for s in FeedbackStatus}:
            raise ValidationError(f"Invalid status: {status}")

        link_uuid = None
        if link_id:
            try:
                link_uuid = uuid.UUID(link_id)
            except ValueError:
                raise ValidationError("Invalid linkId format")

        since = utcnow() - timedelta(days=days)
        results, total = await self.store.list_attributions(
            owner_id,
            since=since,
            status=None if status == "all" else status,
            link_id=link_uuid,
            limit=limit,
            offset=offset,
        )

        return {
            "attributions": results,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + len(results) < total,
            },
            "filters": {
                "status": status,
                "link_id": link_id,
                "days": days,
                "start_date": since.isoformat(),
            },
        }


def _parse_link_id(link_id: str | None) -> uuid.UUID | None:
    if not link_id:
        return None
    try:
        return uuid.UUID(str(link_id))
    except ValueError:
        raise ValidationError("Invalid linkId format")


def _parse_attribution_id(attribution_id: str) -> uuid.UUID:
    # A malformed id cannot name an existing attribution
    try:
        return uuid.UUID(str(attribution_id))
    except ValueError:
        raise NotFoundError("Attribution not found")
