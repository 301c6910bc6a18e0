from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from evidence_engine.core.config import settings
from evidence_engine.core.enums import DIMENSIONS, Dimension
from evidence_engine.models.evidence_entry import EvidenceEntry
from evidence_engine.services.scoring import DimensionSummary, coerce_dimension, round2

logger = logging.getLogger(__name__)


class EvidenceSource(Protocol):
    def get_dimension_summaries(
        self, employee_id: int, start_date: date, end_date: date
    ) -> list[DimensionSummary]:
        """May omit dimensions that have no evidence in the window."""
        ...


@dataclass(frozen=True)
class EvidenceQualityMetrics:
    total_entries: int
    dimensions_covered: int
    unique_evaluators: int
    avg_content_length: float


@dataclass
class ConsistencyReport:
    issues: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


class SqlEvidenceSource:
    """Reads evidence_entries for one employee over an inclusive date window."""

    def __init__(self, db: Session, recency_half_life_days: int | None = None):
        self.db = db
        self.recency_half_life_days = recency_half_life_days or settings.RECENCY_HALF_LIFE_DAYS

    def _window(self, employee_id: int, start_date: date | None, end_date: date | None):
        q = self.db.query(EvidenceEntry).filter(EvidenceEntry.employee_id == employee_id)
        if start_date:
            q = q.filter(EvidenceEntry.entry_date >= start_date)
        if end_date:
            q = q.filter(EvidenceEntry.entry_date <= end_date)
        return q

    def get_dimension_summaries(
        self, employee_id: int, start_date: date, end_date: date
    ) -> list[DimensionSummary]:
        rating = EvidenceEntry.star_rating
        rows = (
            self._window(employee_id, start_date, end_date)
            .with_entities(
                EvidenceEntry.dimension,
                func.count(EvidenceEntry.id),
                func.avg(rating),
                func.sum(case((rating >= 4, 1), else_=0)),
                func.sum(case((rating <= 2, 1), else_=0)),
                func.min(rating),
                func.max(rating),
            )
            .group_by(EvidenceEntry.dimension)
            .all()
        )

        out: list[DimensionSummary] = []
        for dim_raw, count, avg, positive, negative, lo, hi in rows:
            dimension = coerce_dimension(dim_raw)
            if dimension is None:
                logger.warning(
                    "skipping evidence with unknown dimension",
                    extra={"employee_id": employee_id, "dimension": dim_raw, "entry_count": count},
                )
                continue
            out.append(
                DimensionSummary(
                    dimension=dimension,
                    entry_count=int(count or 0),
                    avg_rating=float(avg) if avg is not None else None,
                    positive_count=int(positive or 0),
                    negative_count=int(negative or 0),
                    min_rating=lo,
                    max_rating=hi,
                )
            )
        return out

    def get_recency_weighted_ratings(
        self,
        employee_id: int,
        start_date: date,
        end_date: date,
        as_of: date | None = None,
    ) -> dict[Dimension, float]:
        """
        Per-dimension mean rating where each entry is weighted by
        0.5 ** (age_days / half_life). Dimensions without evidence are absent.
        """
        as_of = as_of or end_date
        half_life = float(self.recency_half_life_days)
        sums: dict[Dimension, list[float]] = {}

        rows = (
            self._window(employee_id, start_date, end_date)
            .with_entities(EvidenceEntry.dimension, EvidenceEntry.star_rating, EvidenceEntry.entry_date)
            .all()
        )
        for dim_raw, stars, entry_date in rows:
            dimension = coerce_dimension(dim_raw)
            if dimension is None:
                continue
            age_days = max((as_of - entry_date).days, 0)
            weight = 0.5 ** (age_days / half_life)
            acc = sums.setdefault(dimension, [0.0, 0.0])
            acc[0] += stars * weight
            acc[1] += weight

        return {d: round2(total / w) for d, (total, w) in sums.items() if w > 0}

    def get_quality_metrics(
        self, employee_id: int, start_date: date | None = None, end_date: date | None = None
    ) -> EvidenceQualityMetrics:
        q = self._window(employee_id, start_date, end_date)
        total, evaluators, avg_len = q.with_entities(
            func.count(EvidenceEntry.id),
            func.count(func.distinct(EvidenceEntry.manager_id)),
            func.avg(func.length(EvidenceEntry.content)),
        ).one()
        dims = {
            d for (d,) in q.with_entities(EvidenceEntry.dimension).distinct().all()
            if coerce_dimension(d) is not None
        }
        return EvidenceQualityMetrics(
            total_entries=int(total or 0),
            dimensions_covered=len(dims),
            unique_evaluators=int(evaluators or 0),
            avg_content_length=round2(float(avg_len)) if avg_len is not None else 0.0,
        )

    def validate_consistency(
        self,
        employee_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
        today: date | None = None,
    ) -> ConsistencyReport:
        today = today or date.today()
        q = self._window(employee_id, start_date, end_date)
        report = ConsistencyReport()

        bad_ratings = q.filter(
            (EvidenceEntry.star_rating < 1) | (EvidenceEntry.star_rating > 5)
        ).count()
        if bad_ratings:
            report.issues.append(f"{bad_ratings} entries have a star rating outside 1-5")

        known = [d.value for d in DIMENSIONS]
        unknown = q.filter(EvidenceEntry.dimension.notin_(known)).count()
        if unknown:
            report.issues.append(f"{unknown} entries have an unknown dimension")

        future = q.filter(EvidenceEntry.entry_date > today).count()
        if future:
            report.issues.append(f"{future} entries are dated in the future")

        return report

    def has_entries_created_since(self, employee_id: int, since: datetime) -> bool:
        return (
            self.db.query(EvidenceEntry.id)
            .filter(EvidenceEntry.employee_id == employee_id, EvidenceEntry.created_at > since)
            .first()
            is not None
        )
