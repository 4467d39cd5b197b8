"""Candidate resolver: runs the strategy chain for one conversion."""

import logging
from dataclasses import dataclass

from app.exceptions import StoreError
from app.models import ConversionEvent, LinkClick
from app.services.record_store import RecordStore
from app.services.strategies import MatchingStrategy, Signal, default_strategies

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateMatch:
    """The click a strategy found, and which strategy found it."""

    click: LinkClick
    signal: Signal


class CandidateResolver:
    """
    Find at most one prior click for a conversion.

    Strategies are tried in priority order; the first one returning a click
    wins and later strategies are not consulted. A StoreError in a strategy
    is logged and treated as "no candidate" for that strategy only.
    """

    def __init__(
        self,
        store: RecordStore,
        strategies: list[MatchingStrategy] | None = None,
    ):
        self.store = store
        self.strategies = strategies if strategies is not None else default_strategies()

    async def resolve(self, conversion: ConversionEvent) -> CandidateMatch | None:
        for strategy in self.strategies:
            try:
                click = await strategy.find_candidate(self.store, conversion)
            except StoreError as e:
                logger.warning(
                    "Strategy %s degraded for conversion %s: %s",
                    strategy.signal.value,
                    conversion.id,
                    e.message,
                )
                continue

            if click is not None:
                logger.debug(
                    "Conversion %s matched click %s via %s",
                    conversion.id,
                    click.id,
                    strategy.signal.value,
                )
                return CandidateMatch(click=click, signal=strategy.signal)

        return None
