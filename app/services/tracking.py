"""Tracking service - link management and click / page view ingestion.

Clicks and page views are the raw material attribution reads. Both are
append-only; nothing here ever updates an existing event.
"""

import logging
import re
import secrets
import uuid
from dataclasses import dataclass

from app.exceptions import NotFoundError, StoreError, ValidationError
from app.models import LinkClick, PageView, TrackingLink
from app.services.record_store import RecordStore
from app.timeutils import utcnow

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,64}$")

_TABLET_RE = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
_MOBILE_RE = re.compile(r"Mobile|iP(hone|od)|Android|BlackBerry|IEMobile")


def device_type(user_agent: str | None) -> str:
    """Coarse device class from a User-Agent string."""
    if not user_agent:
        return "desktop"
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def generate_tracker_id() -> str:
    return f"rckr_{secrets.token_urlsafe(16)}"


@dataclass
class ClickContext:
    """Request metadata captured when a short link is followed."""

    ip_address: str | None = None
    tracker_id: str | None = None
    user_agent: str | None = None
    referrer_url: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None


class TrackingService:
    """Create links and record the events attribution is built from."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create_link(
        self,
        owner_id: str,
        destination_url: str,
        slug: str | None = None,
        campaign: str | None = None,
    ) -> TrackingLink:
        if not destination_url.startswith(("http://", "https://")):
            raise ValidationError("destinationUrl must be an http(s) URL")

        if slug:
            if not SLUG_PATTERN.match(slug):
                raise ValidationError(
                    "slug must be 3-64 characters of letters, digits, '-' or '_'"
                )
        else:
            slug = secrets.token_urlsafe(6)

        existing = await self.store.get_link_by_slug(slug)
        if existing:
            raise ValidationError(f"Slug '{slug}' already exists")

        link = TrackingLink(
            id=uuid.uuid4(),
            owner_id=owner_id,
            slug=slug,
            destination_url=destination_url,
            campaign=campaign,
            is_active=True,
            created_at=utcnow(),
        )
        return await self.store.add_link(link)

    async def list_links(self, owner_id: str) -> list[TrackingLink]:
        return await self.store.list_links(owner_id)

    async def record_click(self, slug: str, context: ClickContext) -> TrackingLink:
        """
        Look up an active link and log a click on it.

        Click logging is best effort: a store failure is logged and the
        caller still gets the link so the visitor is redirected.
        """
        link = await self.store.get_link_by_slug(slug)
        if link is None or not link.is_active:
            raise NotFoundError("Link not found or inactive")

        click = LinkClick(
            id=uuid.uuid4(),
            tracking_link_id=link.id,
            clicked_at=utcnow(),
            ip_address=context.ip_address,
            tracker_id=context.tracker_id,
            user_agent=context.user_agent,
            referrer_url=context.referrer_url,
            device_type=device_type(context.user_agent),
            utm_source=context.utm_source,
            utm_medium=context.utm_medium,
            utm_campaign=context.utm_campaign,
            utm_term=context.utm_term,
            utm_content=context.utm_content,
        )
        try:
            await self.store.add_click(click)
        except StoreError:
            logger.exception("Failed to log click on %s", slug)
        else:
            logger.info("Click on %s (tracker=%s)", slug, context.tracker_id)

        return link

    async def record_page_view(
        self,
        tracker_id: str | None,
        page_url: str | None,
        *,
        link_id: str | None = None,
        session_id: str | None = None,
        fingerprint: str | None = None,
        page_title: str | None = None,
        referrer_url: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> PageView:
        if not tracker_id or not page_url:
            raise ValidationError("trackerId and pageUrl are required")

        link_uuid = None
        if link_id:
            try:
                link_uuid = uuid.UUID(link_id)
            except ValueError:
                raise ValidationError("Invalid linkId format")
            if await self.store.get_link(link_uuid) is None:
                raise ValidationError("Unknown linkId")

        page_view = PageView(
            id=uuid.uuid4(),
            tracker_id=tracker_id,
            tracking_link_id=link_uuid,
            session_id=session_id,
            fingerprint=fingerprint,
            page_url=page_url,
            page_title=page_title,
            referrer_url=referrer_url,
            ip_address=ip_address,
            user_agent=user_agent,
            device_type=device_type(user_agent),
            viewed_at=utcnow(),
        )
        await self.store.add_page_view(page_view)

        logger.info("Page view %s on %s", tracker_id, page_url)
        return page_view
