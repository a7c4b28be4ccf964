"""
Composite Scorer
================

Combines detector results into one spam score and a set of threat kinds.
"""

from dataclasses import dataclass
from typing import FrozenSet, Sequence

from .constants import EMIT_SCORE, SIGNIFICANCE_FLOORS
from .models import DetectorResult


@dataclass(frozen=True)
class CompositeScore:
    """Summed significant scores plus the detectors that flagged a threat."""
    score: float
    threat_kinds: FrozenSet[str]

    @property
    def should_emit(self) -> bool:
        """A message detection is emitted above the score line or on any threat."""
        return self.score > EMIT_SCORE or bool(self.threat_kinds)


def significant_score(result: DetectorResult) -> float:
    """A detector's score, or 0 when it does not clear its floor."""
    floor = SIGNIFICANCE_FLOORS.get(result.type, 0.0)
    return result.score if result.score > floor else 0.0


def combine(results: Sequence[DetectorResult]) -> CompositeScore:
    return CompositeScore(
        score=sum(significant_score(r) for r in results),
        threat_kinds=frozenset(r.type.value for r in results if r.is_threat),
    )


__all__ = [
    "CompositeScore",
    "significant_score",
    "combine",
]
