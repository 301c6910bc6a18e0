"""
Dimension scoring and overall-rating math.

Everything here is pure: no session, no I/O. Scoring never raises; bad input
degrades to a zero score with an ``anomaly`` note and a logged warning.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from evidence_engine.core.enums import DIMENSIONS, ConfidenceLevel, Dimension

logger = logging.getLogger(__name__)

MAX_SCORE = 5.0

DIMENSION_WEIGHTS: dict[Dimension, float] = {
    Dimension.KPIS: 0.30,
    Dimension.COMPETENCIES: 0.25,
    Dimension.RESPONSIBILITIES: 0.25,
    Dimension.VALUES: 0.20,
}
DEFAULT_DIMENSION_WEIGHT = 0.25

STRENGTH_THRESHOLD = 4.0
DEVELOPMENT_THRESHOLD = 3.0


@dataclass(frozen=True)
class DimensionSummary:
    """Raw evidence statistics for one dimension over a date window."""

    dimension: Dimension
    entry_count: int = 0
    avg_rating: float | None = None
    positive_count: int = 0
    negative_count: int = 0
    min_rating: int | None = None
    max_rating: int | None = None

    @classmethod
    def empty(cls, dimension: Dimension) -> "DimensionSummary":
        return cls(dimension=dimension)


@dataclass(frozen=True)
class DimensionScore:
    dimension: Dimension
    entry_count: int
    avg_rating: float
    positive_count: int
    negative_count: int
    calculated_score: float
    confidence_factor: float
    trend_factor: float
    recency_factor: float
    anomaly: str | None = None

    def as_row(self) -> dict:
        """Persistable fields of the result."""
        return {
            "dimension": self.dimension.value,
            "entry_count": self.entry_count,
            "avg_rating": self.avg_rating,
            "positive_count": self.positive_count,
            "negative_count": self.negative_count,
            "calculated_score": self.calculated_score,
        }


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def clamp(value: float, low: float = 0.0, high: float = MAX_SCORE) -> float:
    return max(low, min(high, value))


def coerce_dimension(value) -> Dimension | None:
    if isinstance(value, Dimension):
        return value
    try:
        return Dimension(value)
    except ValueError:
        return None


def confidence_factor(entry_count: int) -> float:
    """More samples, more trust in the average."""
    if entry_count <= 0:
        return 0.0
    if entry_count == 1:
        return 0.5
    if entry_count <= 3:
        return 0.7
    if entry_count <= 7:
        return 0.85
    if entry_count <= 15:
        return 0.95
    return 1.0


def trend_factor(entry_count: int, positive_count: int, negative_count: int) -> float:
    """
    0.8 for all-negative evidence up to 1.2 for all-positive; neutral entries
    (3 stars) count half.
    """
    if entry_count <= 0:
        return 1.0
    neutral = entry_count - positive_count - negative_count
    trend_score = (positive_count * 1.0 + neutral * 0.5 + negative_count * 0.0) / entry_count
    trend_score = clamp(trend_score, 0.0, 1.0)
    return round(0.8 + trend_score * 0.4, 4)


def recency_factor(summary: DimensionSummary) -> float:
    # Per-entry date weighting is not applied at summary level.
    # See SqlEvidenceSource.get_recency_weighted_ratings for the weighted primitive.
    return 1.0


def _as_count(value) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n >= 0 else None


def _as_rating(value) -> float | None:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(x) or math.isinf(x) or x < 0 or x > MAX_SCORE:
        return None
    return x


def _zero(dimension: Dimension, anomaly: str | None = None, entry_count: int = 0,
          positive_count: int = 0, negative_count: int = 0) -> DimensionScore:
    return DimensionScore(
        dimension=dimension,
        entry_count=entry_count,
        avg_rating=0.0,
        positive_count=positive_count,
        negative_count=negative_count,
        calculated_score=0.0,
        confidence_factor=confidence_factor(entry_count) if anomaly else 0.0,
        trend_factor=1.0,
        recency_factor=1.0,
        anomaly=anomaly,
    )


def score_dimension(summary: DimensionSummary) -> DimensionScore:
    """
    calculated_score = clamp(avg * confidence * trend * recency, 0, 5), 2 decimals.
    """
    dimension = summary.dimension
    entry_count = _as_count(summary.entry_count)
    if entry_count is None:
        logger.warning(
            "invalid entry_count treated as zero",
            extra={"dimension": dimension.value, "entry_count": repr(summary.entry_count)},
        )
        return _zero(dimension)

    if entry_count == 0:
        return _zero(dimension)

    positive = _as_count(summary.positive_count) or 0
    negative = _as_count(summary.negative_count) or 0
    if positive + negative > entry_count:
        logger.warning(
            "positive/negative counts exceed entry_count",
            extra={"dimension": dimension.value, "entry_count": entry_count,
                   "positive_count": positive, "negative_count": negative},
        )

    avg = _as_rating(summary.avg_rating)
    if avg is None:
        logger.warning(
            "invalid avg_rating treated as zero",
            extra={"dimension": dimension.value, "avg_rating": repr(summary.avg_rating)},
        )
        return _zero(
            dimension,
            anomaly="invalid_avg_rating",
            entry_count=entry_count,
            positive_count=positive,
            negative_count=negative,
        )

    conf = confidence_factor(entry_count)
    trend = trend_factor(entry_count, positive, negative)
    recency = recency_factor(summary)
    score = round2(clamp(avg * conf * trend * recency))

    return DimensionScore(
        dimension=dimension,
        entry_count=entry_count,
        avg_rating=round2(avg),
        positive_count=positive,
        negative_count=negative,
        calculated_score=score,
        confidence_factor=conf,
        trend_factor=trend,
        recency_factor=recency,
    )


def dimension_weight(dimension) -> float:
    d = coerce_dimension(dimension)
    if d is None:
        return DEFAULT_DIMENSION_WEIGHT
    return DIMENSION_WEIGHTS.get(d, DEFAULT_DIMENSION_WEIGHT)


def weighted_mean(scores: Mapping) -> float:
    """Weighted mean of {dimension: score} using the fixed dimension weights."""
    total_weight = 0.0
    total = 0.0
    for dimension, score in scores.items():
        w = dimension_weight(dimension)
        total += float(score or 0.0) * w
        total_weight += w
    if total_weight <= 0:
        return 0.0
    return round2(total / total_weight)


def aggregated_overall_rating(results: Iterable) -> float:
    """
    Overall rating from already confidence-adjusted dimension scores.

    ``results`` are DimensionScore objects or persisted result rows.
    """
    return weighted_mean({r.dimension: r.calculated_score for r in results})


def recomputed_overall_rating(results: Iterable) -> float:
    """
    Legacy recomputation path: applies confidence_factor(entry_count) again on
    top of calculated_score, so low-sample dimensions are discounted twice.
    Kept separate from aggregated_overall_rating until product confirms which
    one is intended.
    """
    total_weight = 0.0
    total = 0.0
    for r in results:
        w = dimension_weight(r.dimension)
        total += float(r.calculated_score or 0.0) * confidence_factor(int(r.entry_count or 0)) * w
        total_weight += w
    if total_weight <= 0:
        return 0.0
    return round2(total / total_weight)


def classify_confidence(total_entries: int, coverage_score: float, average_confidence: float) -> ConfidenceLevel:
    if total_entries <= 0:
        return ConfidenceLevel.NONE
    if total_entries < 3 or coverage_score < 0.5:
        return ConfidenceLevel.LOW
    if total_entries < 8 or coverage_score < 0.75 or average_confidence < 0.7:
        return ConfidenceLevel.MODERATE
    if total_entries < 15 or average_confidence < 0.85:
        return ConfidenceLevel.GOOD
    return ConfidenceLevel.HIGH


def coverage_score(results: Iterable) -> float:
    covered = sum(1 for r in results if (r.entry_count or 0) > 0)
    return covered / len(DIMENSIONS)


def performance_indicator(score: float | None) -> str:
    if score is None:
        return "Not Rated"
    if score >= 4.5:
        return "Excellent"
    if score >= 3.5:
        return "Good"
    if score >= 2.5:
        return "Satisfactory"
    if score >= 1.5:
        return "Needs Improvement"
    return "Unsatisfactory"


def recommendation(result) -> str | None:
    """Recommendation tag for one dimension result, or None when nothing stands out."""
    if (result.entry_count or 0) == 0:
        return "collect evidence"
    if result.calculated_score < DEVELOPMENT_THRESHOLD:
        return "development area"
    if result.calculated_score >= STRENGTH_THRESHOLD:
        return "strength"
    return None
