"""Tracking script endpoints: page views and form conversions.

Called cross-origin by the script embedded on destination sites, so these
routes take no caller identity.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.deps import StoreDep, client_ip
from app.config import settings
from app.services.attribution import AttributionService
from app.services.strategies import default_strategies
from app.services.tracking import TrackingService

router = APIRouter(prefix="/api/t", tags=["tracking"])


def _scalar_to_str(value: Any) -> Any:
    """Accept numbers and booleans where the script sends free text."""
    if isinstance(value, (bool, int, float)):
        return str(value)
    return value


# Free-text field from a third-party page: scalars are stringified
ScriptText = Annotated[str, BeforeValidator(_scalar_to_str)]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PageViewRequest(CamelModel):
    """Page view reported by the tracking script."""

    tracker_id: ScriptText | None = None
    page_url: ScriptText | None = None
    link_id: ScriptText | None = None
    session_id: ScriptText | None = None
    fingerprint: ScriptText | None = None
    page_title: ScriptText | None = None
    referrer: ScriptText | None = None


class PageViewResponse(CamelModel):
    success: bool
    id: str


class FormConversionRequest(CamelModel):
    """Form submission reported by the tracking script."""

    page_url: ScriptText | None = None
    tracker_id: ScriptText | None = None
    link_id: ScriptText | None = None
    fingerprint: ScriptText | None = None
    form_id: ScriptText | None = None
    form_name: ScriptText | None = None
    email: ScriptText | None = None
    name: ScriptText | None = None
    phone: ScriptText | None = None
    metadata: Any = None


class FormConversionResponse(CamelModel):
    """Attribution outcome for a form conversion."""

    success: bool
    id: str
    attributed: bool
    confidence: float
    link_id: str | None


@router.post("/pageview", response_model=PageViewResponse)
async def track_page_view(
    data: PageViewRequest,
    request: Request,
    store: StoreDep,
) -> PageViewResponse:
    """Record a page view tying a tracker cookie to the link it came through."""
    service = TrackingService(store)

    page_view = await service.record_page_view(
        data.tracker_id,
        data.page_url,
        link_id=data.link_id,
        session_id=data.session_id,
        fingerprint=data.fingerprint,
        page_title=data.page_title,
        referrer_url=data.referrer,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return PageViewResponse(success=True, id=str(page_view.id))


@router.post("/form", response_model=FormConversionResponse)
async def track_form_conversion(
    data: FormConversionRequest,
    request: Request,
    store: StoreDep,
) -> FormConversionResponse:
    """
    Attribute a form submission to a prior click.

    Strategies, highest trust first:
    - tracker cookie -> page view -> link -> latest click
    - explicit linkId -> latest click
    - same IP within the last 24 hours

    The conversion is always recorded, even when nothing matches.
    """
    service = AttributionService(
        store, default_strategies(settings.ip_match_window_hours)
    )

    result = await service.track_conversion(
        data.page_url,
        tracker_id=data.tracker_id,
        link_id=data.link_id,
        fingerprint=data.fingerprint,
        ip_address=client_ip(request),
        form_id=data.form_id,
        form_name=data.form_name,
        email=data.email,
        name=data.name,
        phone=data.phone,
        metadata=data.metadata,
    )

    return FormConversionResponse(
        success=True,
        id=str(result.id),
        attributed=result.attributed,
        confidence=result.confidence_score,
        link_id=str(result.link_id) if result.link_id else None,
    )
