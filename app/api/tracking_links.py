"""Tracking Links API endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from app.api.deps import OwnerDep, StoreDep, client_ip
from app.api.tracking import CamelModel
from app.config import settings
from app.models import TrackingLink
from app.services.tracking import ClickContext, TrackingService, generate_tracker_id

router = APIRouter(prefix="/api", tags=["tracking-links"])


# ============ Schemas ============


class TrackingLinkCreate(CamelModel):
    """Request to create a tracking link."""

    destination_url: str
    slug: str | None = None
    campaign: str | None = None


class TrackingLinkResponse(CamelModel):
    """Tracking link response."""

    id: str
    slug: str
    destination_url: str
    track_url: str
    campaign: str | None
    is_active: bool
    created_at: str


# ============ Helper Functions ============


def _link_to_response(link: TrackingLink) -> TrackingLinkResponse:
    """Convert TrackingLink model to response."""
    return TrackingLinkResponse(
        id=str(link.id),
        slug=link.slug,
        destination_url=link.destination_url,
        track_url=f"/api/track/{link.slug}",
        campaign=link.campaign,
        is_active=bool(link.is_active),
        created_at=link.created_at.isoformat() if link.created_at else "",
    )


# ============ Endpoints ============


@router.post("/links", response_model=TrackingLinkResponse)
async def create_tracking_link(
    data: TrackingLinkCreate,
    owner_id: OwnerDep,
    store: StoreDep,
) -> TrackingLinkResponse:
    """Create a new tracking link owned by the caller."""
    service = TrackingService(store)
    link = await service.create_link(
        owner_id,
        data.destination_url,
        slug=data.slug,
        campaign=data.campaign,
    )
    return _link_to_response(link)


@router.get("/links", response_model=list[TrackingLinkResponse])
async def get_tracking_links(
    owner_id: OwnerDep,
    store: StoreDep,
) -> list[TrackingLinkResponse]:
    """Get all tracking links for the caller, newest first."""
    service = TrackingService(store)
    links = await service.list_links(owner_id)
    return [_link_to_response(link) for link in links]


@router.get("/track/{slug}")
async def follow_tracking_link(
    slug: str,
    request: Request,
    store: StoreDep,
) -> RedirectResponse:
    """
    Record a click and redirect to the link's destination.

    Sets the tracker cookie on first visit so later page views and form
    submissions on the destination site can be tied back to this click.
    """
    cookie_name = settings.tracker_cookie_name
    tracker_id = request.cookies.get(cookie_name)
    is_new_tracker = not tracker_id
    if is_new_tracker:
        tracker_id = generate_tracker_id()

    params = request.query_params
    context = ClickContext(
        ip_address=client_ip(request),
        tracker_id=tracker_id,
        user_agent=request.headers.get("user-agent"),
        referrer_url=request.headers.get("referer"),
        utm_source=params.get("utm_source"),
        utm_medium=params.get("utm_medium"),
        utm_campaign=params.get("utm_campaign"),
        utm_term=params.get("utm_term"),
        utm_content=params.get("utm_content"),
    )

    service = TrackingService(store)
    link = await service.record_click(slug, context)

    response = RedirectResponse(link.destination_url, status_code=307)
    if is_new_tracker:
        response.set_cookie(
            cookie_name,
            tracker_id,
            max_age=settings.tracker_cookie_max_age_days * 24 * 60 * 60,
            path="/",
            httponly=True,
            secure=not settings.debug,
            samesite="lax",
        )
    return response
