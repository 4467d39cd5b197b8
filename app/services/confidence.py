"""Confidence scoring for click-to-conversion matches.

Confidence is based on:
- WHICH strategy found the click (base weight, added once)
- HOW LONG before the conversion the click happened (time-decay bonus)

Scoring is pure: the same signal and elapsed time always give the same result.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from app.services.strategies import Signal


@dataclass(frozen=True)
class ConfidenceResult:
    """Result of confidence scoring."""

    score: float  # 0.0 - 1.0
    signals: tuple[Signal, ...]
    elapsed_minutes: int | None
    reasons: list[str] = field(default_factory=list)

    @property
    def attributed(self) -> bool:
        return bool(self.signals)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "signals": [s.value for s in self.signals],
            "elapsed_minutes": self.elapsed_minutes,
            "reasons": self.reasons,
        }


class ConfidenceScorer:
    """
    Compute confidence for a resolved candidate.

    Time-decay tiers (upper bound in minutes, inclusive):
    - <= 30 minutes: +0.20
    - <= 120 minutes: +0.10
    - otherwise: +0.00
    """

    TIME_DECAY_TIERS: tuple[tuple[int, float], ...] = (
        (30, 0.20),
        (120, 0.10),
    )
    MAX_SCORE = 1.0

    @staticmethod
    def elapsed_minutes(clicked_at: datetime, converted_at: datetime) -> int:
        """Whole minutes from click to conversion, floored."""
        return math.floor((converted_at - clicked_at).total_seconds() / 60)

    def time_bonus(self, elapsed_minutes: int) -> float:
        for limit, bonus in self.TIME_DECAY_TIERS:
            if elapsed_minutes <= limit:
                return bonus
        return 0.0

    def score(
        self,
        signal: Signal | None,
        elapsed_minutes: int | None = None,
    ) -> ConfidenceResult:
        """
        Score a match.

        Args:
            signal: Strategy that produced the candidate, or None if nothing matched
            elapsed_minutes: Minutes between click and conversion

        Returns:
            ConfidenceResult with score, signal set and reasoning
        """
        if signal is None:
            return ConfidenceResult(
                score=0.0,
                signals=(),
                elapsed_minutes=None,
                reasons=["No matching click found"],
            )

        if elapsed_minutes is None:
            raise ValueError("elapsed_minutes is required when a signal is present")

        reasons = [f"Matched by {signal.value} (+{signal.weight:.2f})"]
        bonus = self.time_bonus(elapsed_minutes)
        if bonus:
            reasons.append(f"Converted {elapsed_minutes} min after click (+{bonus:.2f})")
        else:
            reasons.append(f"Converted {elapsed_minutes} min after click (no recency bonus)")

        # Round away float noise (0.4 + 0.2 == 0.6000000000000001)
        score = round(min(self.MAX_SCORE, signal.weight + bonus), 2)

        return ConfidenceResult(
            score=score,
            signals=(signal,),
            elapsed_minutes=elapsed_minutes,
            reasons=reasons,
        )
