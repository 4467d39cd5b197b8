"""Record store: the storage seam between attribution and the database.

Attribution only talks to a RecordStore. SqlRecordStore backs it with an
AsyncSession; tests substitute an in-memory implementation.

Read methods used by matching strategies raise StoreError on timeouts and
driver failures so a single strategy can degrade without aborting the
request. "Most recent" lookups are always bounded above by ``before`` so a
click written after a conversion is never its candidate.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import StoreError
from app.models import AttributionResult, FeedbackStatus, LinkClick, PageView, TrackingLink

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Storage operations needed by tracking and attribution."""

    # ---- reads used by matching strategies ----

    @abstractmethod
    async def latest_page_view(self, tracker_id: str, before: datetime) -> PageView | None:
        ...

    @abstractmethod
    async def latest_click_for_link(
        self, link_id: uuid.UUID, before: datetime
    ) -> LinkClick | None:
        ...

    @abstractmethod
    async def latest_click_from_ip(
        self, ip_address: str, since: datetime, before: datetime
    ) -> LinkClick | None:
        ...

    # ---- links ----

    @abstractmethod
    async def get_link(self, link_id: uuid.UUID) -> TrackingLink | None:
        ...

    @abstractmethod
    async def get_link_by_slug(self, slug: str) -> TrackingLink | None:
        ...

    @abstractmethod
    async def list_links(self, owner_id: str) -> list[TrackingLink]:
        ...

    @abstractmethod
    async def add_link(self, link: TrackingLink) -> TrackingLink:
        ...

    # ---- append-only writes ----

    @abstractmethod
    async def add_click(self, click: LinkClick) -> LinkClick:
        ...

    @abstractmethod
    async def add_page_view(self, page_view: PageView) -> PageView:
        ...

    @abstractmethod
    async def add_attribution(self, result: AttributionResult) -> AttributionResult:
        """Persist a result together with its (new) conversion."""

    # ---- attribution reads / feedback ----

    @abstractmethod
    async def get_attribution(self, attribution_id: uuid.UUID) -> AttributionResult | None:
        ...

    @abstractmethod
    async def list_attributions(
        self,
        owner_id: str,
        since: datetime,
        status: str | None = None,
        link_id: uuid.UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AttributionResult], int]:
        ...

    @abstractmethod
    async def transition_feedback(
        self, attribution_id: uuid.UUID, status: str, feedback_at: datetime
    ) -> AttributionResult | None:
        """
        Set the verdict only if the attribution is still unset.

        Returns the attribution as stored afterwards (so a verdict written
        concurrently by another request is visible), or None if it is gone.
        """


class SqlRecordStore(RecordStore):
    """RecordStore over an AsyncSession (PostgreSQL in production)."""

    def __init__(self, db: AsyncSession, timeout_seconds: float = 2.0):
        self.db = db
        self.timeout_seconds = timeout_seconds

    async def _first(self, stmt):
        """Run a bounded read and return the first scalar, or raise StoreError."""
        try:
            result = await asyncio.wait_for(self.db.execute(stmt), self.timeout_seconds)
            return result.scalars().first()
        except asyncio.TimeoutError as e:
            await self._reset()
            raise StoreError("Record store query timed out") from e
        except SQLAlchemyError as e:
            await self._reset()
            raise StoreError("Record store query failed") from e

    async def _reset(self) -> None:
        # Every write commits immediately, so a rollback only discards the
        # failed statement's transaction.
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after store failure also failed")

    async def latest_page_view(self, tracker_id: str, before: datetime) -> PageView | None:
        return await self._first(
            select(PageView)
            .where(PageView.tracker_id == tracker_id, PageView.viewed_at <= before)
            .order_by(PageView.viewed_at.desc())
            .limit(1)
        )

    async def latest_click_for_link(
        self, link_id: uuid.UUID, before: datetime
    ) -> LinkClick | None:
        return await self._first(
            select(LinkClick)
            .where(LinkClick.tracking_link_id == link_id, LinkClick.clicked_at <= before)
            .order_by(LinkClick.clicked_at.desc())
            .limit(1)
        )

    async def latest_click_from_ip(
        self, ip_address: str, since: datetime, before: datetime
    ) -> LinkClick | None:
        return await self._first(
            select(LinkClick)
            .where(
                LinkClick.ip_address == ip_address,
                LinkClick.clicked_at >= since,
                LinkClick.clicked_at <= before,
            )
            .order_by(LinkClick.clicked_at.desc())
            .limit(1)
        )

    async def get_link(self, link_id: uuid.UUID) -> TrackingLink | None:
        return await self._first(select(TrackingLink).where(TrackingLink.id == link_id))

    async def get_link_by_slug(self, slug: str) -> TrackingLink | None:
        return await self._first(select(TrackingLink).where(TrackingLink.slug == slug))

    async def list_links(self, owner_id: str) -> list[TrackingLink]:
        result = await self.db.execute(
            select(TrackingLink)
            .where(TrackingLink.owner_id == owner_id)
            .order_by(TrackingLink.created_at.desc())
        )
        return list(result.scalars().all())

    async def _write(self, record):
        """Insert one record and commit, or raise StoreError."""
        self.db.add(record)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._reset()
            raise StoreError("Record store write failed") from e
        return record

    async def add_link(self, link: TrackingLink) -> TrackingLink:
        return await self._write(link)

    async def add_click(self, click: LinkClick) -> LinkClick:
        return await self._write(click)

    async def add_page_view(self, page_view: PageView) -> PageView:
        return await self._write(page_view)

    async def add_attribution(self, result: AttributionResult) -> AttributionResult:
        # The conversion is cascaded through the relationship
        return await self._write(result)

    async def get_attribution(self, attribution_id: uuid.UUID) -> AttributionResult | None:
        result = await self.db.execute(
            select(AttributionResult)
            .options(selectinload(AttributionResult.conversion))
            .where(AttributionResult.id == attribution_id)
        )
        return result.scalar_one_or_none()

    async def list_attributions(
        self,
        owner_id: str,
        since: datetime,
        status: str | None = None,
        link_id: uuid.UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AttributionResult], int]:
        conditions = [
            AttributionResult.owner_id == owner_id,
            AttributionResult.created_at >= since,
        ]
        if status:
            conditions.append(AttributionResult.feedback_status == status)
        if link_id:
            conditions.append(AttributionResult.link_id == link_id)

        total_result = await self.db.execute(
            select(func.count(AttributionResult.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(AttributionResult)
            .options(selectinload(AttributionResult.conversion))
            .where(*conditions)
            .order_by(AttributionResult.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def transition_feedback(
        self, attribution_id: uuid.UUID, status: str, feedback_at: datetime
    ) -> AttributionResult | None:
        stmt = (
            update(AttributionResult)
            .where(
                AttributionResult.id == attribution_id,
                AttributionResult.feedback_status == FeedbackStatus.UNSET.value,
            )
            .values(feedback_status=status, feedback_at=feedback_at)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._reset()
            raise StoreError("Record store write failed") from e

        result = await self.db.execute(
            select(AttributionResult)
            .options(selectinload(AttributionResult.conversion))
            .where(AttributionResult.id == attribution_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
