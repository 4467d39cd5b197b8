"""Matching strategies for candidate click resolution.

Each strategy answers one question against the record store and either
returns the click it found or None. The resolver runs them in order and
stops at the first hit, so adding a strategy never touches existing ones.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum

from app.models import ConversionEvent, LinkClick
from app.services.record_store import RecordStore


class Signal(str, Enum):
    """Which strategy produced the matched click.

    Values are what gets stored in AttributionResult.matched_by.
    """

    TRACKER_IDENTITY = "tracker_id"
    EXPLICIT_LINK = "link_id"
    IP_FALLBACK = "ip_match"

    @property
    def weight(self) -> float:
        return BASE_WEIGHTS[self]


# Base confidence contributed by each signal, added once
BASE_WEIGHTS: dict[Signal, float] = {
    Signal.TRACKER_IDENTITY: 0.40,
    Signal.EXPLICIT_LINK: 0.35,
    Signal.IP_FALLBACK: 0.25,
}


class MatchingStrategy(ABC):
    """A single way of finding the click behind a conversion."""

    signal: Signal

    @abstractmethod
    async def find_candidate(
        self, store: RecordStore, conversion: ConversionEvent
    ) -> LinkClick | None:
        """Return the candidate click, or None if this strategy does not apply."""

    @property
    def weight(self) -> float:
        return self.signal.weight

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.signal.value}>"


class TrackerIdentityStrategy(MatchingStrategy):
    """Tracker cookie -> latest page view -> latest click on that view's link."""

    signal = Signal.TRACKER_IDENTITY

    async def find_candidate(
        self, store: RecordStore, conversion: ConversionEvent
    ) -> LinkClick | None:
        if not conversion.tracker_id:
            return None

        page_view = await store.latest_page_view(
            conversion.tracker_id, before=conversion.created_at
        )
        if page_view is None or page_view.tracking_link_id is None:
            return None

        return await store.latest_click_for_link(
            page_view.tracking_link_id, before=conversion.created_at
        )


class ExplicitLinkStrategy(MatchingStrategy):
    """Link id passed through by the destination page."""

    signal = Signal.EXPLICIT_LINK

    async def find_candidate(
        self, store: RecordStore, conversion: ConversionEvent
    ) -> LinkClick | None:
        if conversion.link_id is None:
            return None
        return await store.latest_click_for_link(
            conversion.link_id, before=conversion.created_at
        )


class IpFallbackStrategy(MatchingStrategy):
    """Latest click from the same origin IP inside a trailing window."""

    signal = Signal.IP_FALLBACK

    def __init__(self, window: timedelta = timedelta(hours=24)):
        self.window = window

    async def find_candidate(
        self, store: RecordStore, conversion: ConversionEvent
    ) -> LinkClick | None:
        if not conversion.ip_address:
            return None
        return await store.latest_click_from_ip(
            conversion.ip_address,
            since=conversion.created_at - self.window,
            before=conversion.created_at,
        )


def default_strategies(ip_window_hours: int = 24) -> list[MatchingStrategy]:
    """The production chain, highest trust first."""
    return [
        TrackerIdentityStrategy(),
        ExplicitLinkStrategy(),
        IpFallbackStrategy(window=timedelta(hours=ip_window_hours)),
    ]
