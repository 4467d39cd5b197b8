"""Shared pytest fixtures for Racker tests."""

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_record_store
from app.exceptions import StoreError
from app.main import create_app
from app.models import AttributionResult, FeedbackStatus, LinkClick, PageView, TrackingLink
from app.services.record_store import RecordStore

NOW = datetime(2026, 3, 1, 12, 0, 0)


class InMemoryRecordStore(RecordStore):
    """RecordStore backed by lists. Set ``fail_reads`` to simulate outages."""

    def __init__(self):
        self.links: list[TrackingLink] = []
        self.clicks: list[LinkClick] = []
        self.page_views: list[PageView] = []
        self.attributions: list[AttributionResult] = []
        self.fail_reads: set[str] = set()
        self.fail_writes = False

    def _check(self, operation: str) -> None:
        if operation in self.fail_reads:
            raise StoreError(f"{operation} unavailable")

    async def latest_page_view(self, tracker_id, before):
        self._check("latest_page_view")
        views = [v for v in self.page_views if v.tracker_id == tracker_id and v.viewed_at <= before]
        return max(views, key=lambda v: v.viewed_at, default=None)

    async def latest_click_for_link(self, link_id, before):
        self._check("latest_click_for_link")
        clicks = [
            c for c in self.clicks if c.tracking_link_id == link_id and c.clicked_at <= before
        ]
        return max(clicks, key=lambda c: c.clicked_at, default=None)

    async def latest_click_from_ip(self, ip_address, since, before):
        self._check("latest_click_from_ip")
        clicks = [
            c
            for c in self.clicks
            if c.ip_address == ip_address and since <= c.clicked_at <= before
        ]
        return max(clicks, key=lambda c: c.clicked_at, default=None)

    async def get_link(self, link_id):
        self._check("get_link")
        return next((link for link in self.links if link.id == link_id), None)

    async def get_link_by_slug(self, slug):
        self._check("get_link_by_slug")
        return next((link for link in self.links if link.slug == slug), None)

    async def list_links(self, owner_id):
        links = [link for link in self.links if link.owner_id == owner_id]
        return sorted(links, key=lambda link: link.created_at, reverse=True)

    async def add_link(self, link):
        self.links.append(link)
        return link

    async def add_click(self, click):
        if self.fail_writes:
            raise StoreError("write failed")
        self.clicks.append(click)
        return click

    async def add_page_view(self, page_view):
        if self.fail_writes:
            raise StoreError("write failed")
        self.page_views.append(page_view)
        return page_view

    async def add_attribution(self, result):
        if self.fail_writes:
            raise StoreError("write failed")
        self.attributions.append(result)
        return result

    async def get_attribution(self, attribution_id):
        return next((r for r in self.attributions if r.id == attribution_id), None)

    async def list_attributions(
        self, owner_id, since, status=None, link_id=None, limit=50, offset=0
    ):
        matches = [
            r
            for r in self.attributions
            if r.owner_id == owner_id
            and r.created_at >= since
            and (status is None or r.feedback_status == status)
            and (link_id is None or r.link_id == link_id)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return matches[offset : offset + limit], len(matches)

    async def transition_feedback(self, attribution_id, status, feedback_at):
        result = next((r for r in self.attributions if r.id == attribution_id), None)
        if result is not None and result.feedback_status == FeedbackStatus.UNSET.value:
            result.feedback_status = status
            result.feedback_at = feedback_at
        return result

    # ---- seeding helpers ----

    def seed_link(self, owner_id: str = "user_alice", slug: str = "launch") -> TrackingLink:
        link = TrackingLink(
            id=uuid.uuid4(),
            owner_id=owner_id,
            slug=slug,
            destination_url="https://shop.example.com/landing",
            is_active=True,
            created_at=NOW - timedelta(days=7),
        )
        self.links.append(link)
        return link

    def seed_click(
        self,
        link: TrackingLink,
        clicked_at: datetime,
        ip_address: str | None = None,
        tracker_id: str | None = None,
    ) -> LinkClick:
        click = LinkClick(
            id=uuid.uuid4(),
            tracking_link_id=link.id,
            clicked_at=clicked_at,
            ip_address=ip_address,
            tracker_id=tracker_id,
        )
        self.clicks.append(click)
        return click

    def seed_page_view(
        self, tracker_id: str, link: TrackingLink | None, viewed_at: datetime
    ) -> PageView:
        page_view = PageView(
            id=uuid.uuid4(),
            tracker_id=tracker_id,
            tracking_link_id=link.id if link else None,
            page_url="https://shop.example.com/landing",
            viewed_at=viewed_at,
        )
        self.page_views.append(page_view)
        return page_view


@pytest.fixture
def store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def client(store):
    """Test client wired to the in-memory store."""
    app = create_app()
    app.dependency_overrides[get_record_store] = lambda: store
    with TestClient(app) as client:
        yield client
