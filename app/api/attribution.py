"""Attribution API endpoints (owner scoped)."""

from typing import Annotated, Any

from fastapi import APIRouter, Query
from pydantic import StrictBool
from pydantic.alias_generators import to_camel

from app.api.deps import OwnerDep, StoreDep
from app.api.tracking import CamelModel
from app.exceptions import ValidationError
from app.models import AttributionResult
from app.services.attribution import AttributionService

router = APIRouter(prefix="/api/attributions", tags=["attributions"])


class ConversionResponse(CamelModel):
    """The conversion an attribution explains."""

    id: str
    page_url: str
    tracker_id: str | None
    link_id: str | None
    fingerprint: str | None
    form_id: str | None
    form_name: str | None
    email: str | None
    name: str | None
    phone: str | None
    metadata: Any = None
    created_at: str


class AttributionResponse(CamelModel):
    """A stored attribution result."""

    id: str
    status: str
    confidence: float
    matched_by: list[str]
    time_since_click_minutes: int | None
    click_id: str | None
    link_id: str | None
    created_at: str
    feedback_at: str | None
    conversion: ConversionResponse | None


class PaginationResponse(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AttributionListResponse(CamelModel):
    attributions: list[AttributionResponse]
    pagination: PaginationResponse
    filters: dict[str, Any]


class FeedbackRequest(CamelModel):
    confirmed: StrictBool | None = None


class FeedbackResponse(CamelModel):
    success: bool
    id: str
    status: str
    message: str


def _attribution_to_response(result: AttributionResult) -> AttributionResponse:
    conversion = result.conversion
    return AttributionResponse(
        id=str(result.id),
        status=result.feedback_status,
        confidence=result.confidence_score,
        matched_by=list(result.matched_by or []),
        time_since_click_minutes=result.time_since_click_minutes,
        click_id=str(result.click_id) if result.click_id else None,
        link_id=str(result.link_id) if result.link_id else None,
        created_at=result.created_at.isoformat(),
        feedback_at=result.feedback_at.isoformat() if result.feedback_at else None,
        conversion=_conversion_to_response(conversion) if conversion else None,
    )


def _conversion_to_response(conversion) -> ConversionResponse:
    return ConversionResponse(
        id=str(conversion.id),
        page_url=conversion.page_url,
        tracker_id=conversion.tracker_id,
        link_id=str(conversion.link_id) if conversion.link_id else None,
        fingerprint=conversion.fingerprint,
        form_id=conversion.form_id,
        form_name=conversion.form_name,
        email=conversion.email,
        name=conversion.name,
        phone=conversion.phone,
        metadata=conversion.extra_metadata,
        created_at=conversion.created_at.isoformat(),
    )


@router.get("", response_model=AttributionListResponse)
async def list_attributions(
    owner_id: OwnerDep,
    store: StoreDep,
    status: Annotated[str, Query(description="all, unset, confirmed or rejected")] = "all",
    link_id: Annotated[str | None, Query(alias="linkId")] = None,
    days: Annotated[int, Query(ge=1, le=365, description="Days to look back")] = 30,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AttributionListResponse:
    """List the caller's attributions, newest first."""
    service = AttributionService(store)

    page = await service.list_attributions(
        owner_id,
        status=status.lower(),
        link_id=link_id,
        days=days,
        limit=limit,
        offset=offset,
    )

    return AttributionListResponse(
        attributions=[_attribution_to_response(r) for r in page["attributions"]],
        pagination=PaginationResponse(**page["pagination"]),
        filters={to_camel(k): v for k, v in page["filters"].items()},
    )


@router.get("/{attribution_id}", response_model=AttributionResponse)
async def get_attribution(
    attribution_id: str,
    owner_id: OwnerDep,
    store: StoreDep,
) -> AttributionResponse:
    """Get one attribution with the conversion it explains."""
    service = AttributionService(store)
    result = await service.get_attribution(attribution_id, owner_id)
    return _attribution_to_response(result)


@router.post("/{attribution_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    attribution_id: str,
    data: FeedbackRequest,
    owner_id: OwnerDep,
    store: StoreDep,
) -> FeedbackResponse:
    """
    Confirm or reject an attribution.

    The verdict is stored for later weight tuning; the score itself is
    never recomputed.
    """
    if data.confirmed is None:
        raise ValidationError("Missing 'confirmed' boolean in request body")

    service = AttributionService(store)
    result = await service.submit_feedback(attribution_id, data.confirmed, owner_id)

    verdict = "confirmed" if data.confirmed else "rejected"
    return FeedbackResponse(
        success=True,
        id=str(result.id),
        status=result.feedback_status,
        message=f"Attribution {verdict}. Thank you for the feedback!",
    )
