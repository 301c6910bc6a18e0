from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, Sequence

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from evidence_engine.core.audit import AuditAction, log_event
from evidence_engine.core.config import settings
from evidence_engine.core.enums import DIMENSIONS, ConfidenceLevel, utcnow
from evidence_engine.core.errors import EngineError, InvalidArgument, InvalidPeriod
from evidence_engine.core.result import Err, Ok, Result, returns_result
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.user import User
from evidence_engine.services.evidence_source import EvidenceSource, SqlEvidenceSource
from evidence_engine.services.repository import (
    PeriodProvider,
    SqlEvaluationRepository,
    SqlPeriodProvider,
)
from evidence_engine.services.scoring import (
    DimensionScore,
    DimensionSummary,
    aggregated_overall_rating,
    classify_confidence,
    coverage_score,
    performance_indicator,
    recommendation,
    round2,
    score_dimension,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Period:
    start_date: date
    end_date: date


@dataclass(frozen=True)
class AggregationOutcome:
    evaluation_id: int
    overall_rating: float
    confidence_level: ConfidenceLevel
    coverage_score: float
    total_entries: int
    average_confidence: float
    per_dimension_results: list[DimensionScore]
    summary: str


class BatchItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"
    # aggregated fine, then discarded with the rest of the batch
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class BatchItemOutcome:
    evaluation_id: int
    status: BatchItemStatus
    outcome: AggregationOutcome | None = None
    error: dict | None = None

    @property
    def ok(self) -> bool:
        return self.status is BatchItemStatus.SUCCEEDED


@dataclass
class BatchOutcome:
    results: dict[int, BatchItemOutcome] = field(default_factory=dict)
    rolled_back: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results.values() if r.ok)

    @property
    def failed(self) -> int:
        return sum(
            1 for r in self.results.values() if r.status in (BatchItemStatus.FAILED, BatchItemStatus.ABORTED)
        )

    @property
    def failure_ratio(self) -> float:
        return self.failed / len(self.results) if self.results else 0.0


def _is_positive_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_period(period: Any) -> Period:
    start = getattr(period, "start_date", None)
    end = getattr(period, "end_date", None)
    if not isinstance(start, date) or not isinstance(end, date):
        raise InvalidArgument("Period must define start_date and end_date")
    if start > end:
        raise InvalidPeriod(
            "Period start_date is after end_date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    return Period(start_date=start, end_date=end)


def build_summary_text(
    results: Sequence[DimensionScore],
    overall: float,
    confidence: ConfidenceLevel,
    coverage: float,
    total_entries: int,
) -> str:
    lines = [
        f"Evidence-based rating: {overall:.2f}/5.00 ({performance_indicator(overall)})",
        f"Confidence: {confidence.value} | Coverage: {int(round(coverage * len(DIMENSIONS)))}/{len(DIMENSIONS)} dimensions | Entries: {total_entries}",
        "",
        "Dimension breakdown:",
    ]
    for r in results:
        if r.entry_count:
            lines.append(
                f"- {r.dimension.label}: {r.calculated_score:.2f} "
                f"({r.entry_count} entries, avg {r.avg_rating:.2f} stars, "
                f"{r.positive_count} positive / {r.negative_count} negative)"
            )
        else:
            lines.append(f"- {r.dimension.label}: no evidence")

    lines += ["", "Recommendations:"]
    recs = []
    for r in results:
        tag = recommendation(r)
        if tag == "collect evidence":
            recs.append(f"- {r.dimension.label}: collect evidence (no entries in this period)")
        elif tag:
            recs.append(f"- {r.dimension.label}: {tag} (score {r.calculated_score:.2f})")
    lines += recs or ["- No specific recommendations"]
    return "\n".join(lines)


class EvidenceAggregator:
    """
    Turns an employee's evidence over a period into four persisted dimension
    results plus an overall evidence rating on the evaluation.
    """

    def __init__(
        self,
        db: Session,
        evidence_source: EvidenceSource | None = None,
        repository: SqlEvaluationRepository | None = None,
        periods: PeriodProvider | None = None,
        failure_tolerance: float | None = None,
    ):
        self.db = db
        self.evidence_source = evidence_source or SqlEvidenceSource(db)
        self.repository = repository or SqlEvaluationRepository(db)
        self.periods = periods or SqlPeriodProvider(db)
        self.failure_tolerance = (
            settings.BATCH_FAILURE_TOLERANCE if failure_tolerance is None else failure_tolerance
        )

    @returns_result
    def aggregate(self, evaluation_id: int, employee_id: int, period, actor: User | None = None) -> AggregationOutcome:
        return self.compute_and_store(evaluation_id, employee_id, period, actor=actor)

    def compute_and_store(
        self, evaluation_id: int, employee_id: int, period, actor: User | None = None
    ) -> AggregationOutcome:
        """Raising variant of aggregate() for callers already inside a unit of work."""
        if not _is_positive_id(evaluation_id):
            raise InvalidArgument("evaluation_id must be a positive integer", details={"evaluation_id": evaluation_id})
        if not _is_positive_id(employee_id):
            raise InvalidArgument("employee_id must be a positive integer", details={"employee_id": employee_id})
        window = validate_period(period)

        evaluation = self.repository.get(evaluation_id)
        if evaluation.employee_id != employee_id:
            raise InvalidArgument(
                "Evaluation belongs to a different employee",
                details={"evaluation_id": evaluation_id, "employee_id": employee_id},
            )

        summaries = self._summaries(employee_id, window)
        results = [score_dimension(summaries[d]) for d in DIMENSIONS]

        overall = aggregated_overall_rating(results)
        coverage = coverage_score(results)
        total_entries = sum(r.entry_count for r in results)
        with_evidence = [r.confidence_factor for r in results if r.entry_count > 0]
        avg_confidence = round(sum(with_evidence) / len(with_evidence), 4) if with_evidence else 0.0
        confidence = classify_confidence(total_entries, coverage, avg_confidence)
        summary = build_summary_text(results, overall, confidence, coverage, total_entries)

        with self.db.begin_nested():
            self.repository.replace_dimension_results(evaluation_id, results)
            self.repository.update(
                evaluation_id,
                {
                    "evidence_rating": overall,
                    "evidence_summary": summary,
                    "evidence_aggregated_at": utcnow(),
                },
            )
            log_event(
                db=self.db,
                actor=actor,
                action=AuditAction.EVIDENCE_AGGREGATED,
                entity_id=evaluation_id,
                metadata={
                    "overall_rating": overall,
                    "confidence_level": confidence.value,
                    "total_entries": total_entries,
                },
            )

        logger.info(
            "evidence aggregated",
            extra={
                "evaluation_id": evaluation_id,
                "employee_id": employee_id,
                "overall_rating": overall,
                "confidence_level": confidence.value,
                "total_entries": total_entries,
            },
        )
        return AggregationOutcome(
            evaluation_id=evaluation_id,
            overall_rating=overall,
            confidence_level=confidence,
            coverage_score=coverage,
            total_entries=total_entries,
            average_confidence=avg_confidence,
            per_dimension_results=results,
            summary=summary,
        )

    def _summaries(self, employee_id: int, window: Period) -> dict:
        fetched = self.evidence_source.get_dimension_summaries(
            employee_id, window.start_date, window.end_date
        )
        by_dimension: dict = {d: DimensionSummary.empty(d) for d in DIMENSIONS}
        for s in fetched or []:
            if s.dimension in by_dimension:
                by_dimension[s.dimension] = s
        return by_dimension

    def aggregate_evaluation(self, evaluation: Evaluation, actor: User | None = None) -> AggregationOutcome:
        period = self.periods.get(evaluation.period_id)
        return self.compute_and_store(evaluation.id, evaluation.employee_id, period, actor=actor)

    def batch_aggregate(
        self,
        evaluation_ids: Iterable[int],
        actor: User | None = None,
        abort_on_error: bool = False,
        failure_tolerance: float | None = None,
    ) -> Result[BatchOutcome]:
        """
        Aggregate many evaluations in one outer transaction.

        Each id runs in its own SAVEPOINT; failures are recorded per id. The
        whole batch is rolled back when the failed share exceeds the tolerance
        (default BATCH_FAILURE_TOLERANCE), or on the first failure when
        ``abort_on_error`` is set.
        """
        ids = list(dict.fromkeys(evaluation_ids))
        if not ids:
            return Err(InvalidArgument("evaluation_ids must not be empty"))
        bad = [i for i in ids if not _is_positive_id(i)]
        if bad:
            return Err(InvalidArgument("evaluation_ids must be positive integers", details={"invalid": bad}))
        tolerance = self.failure_tolerance if failure_tolerance is None else failure_tolerance
        if not 0.0 <= tolerance <= 1.0:
            return Err(InvalidArgument("failure_tolerance must be between 0 and 1", details={"failure_tolerance": tolerance}))

        outcome = BatchOutcome()
        batch_tx = self.db.begin_nested()
        try:
            for evaluation_id in ids:
                try:
                    with self.db.begin_nested():
                        evaluation = self.repository.get(evaluation_id)
                        agg = self.aggregate_evaluation(evaluation, actor=actor)
                    outcome.results[evaluation_id] = BatchItemOutcome(
                        evaluation_id, BatchItemStatus.SUCCEEDED, outcome=agg
                    )
                except EngineError as e:
                    outcome.results[evaluation_id] = BatchItemOutcome(
                        evaluation_id, BatchItemStatus.FAILED, error=e.to_dict()
                    )
                except SQLAlchemyError as e:
                    outcome.results[evaluation_id] = BatchItemOutcome(
                        evaluation_id,
                        BatchItemStatus.FAILED,
                        error={"code": "STORAGE_ERROR", "message": str(e.__class__.__name__), "details": {}},
                    )

                if not outcome.results[evaluation_id].ok:
                    logger.warning(
                        "batch aggregation item failed",
                        extra={"evaluation_id": evaluation_id, "error": outcome.results[evaluation_id].error},
                    )
                    if abort_on_error:
                        break

            aborted = abort_on_error and outcome.failed > 0
            for evaluation_id in ids:
                if evaluation_id not in outcome.results:
                    outcome.results[evaluation_id] = BatchItemOutcome(
                        evaluation_id,
                        BatchItemStatus.ABORTED,
                        error={"code": "ABORTED", "message": "Batch aborted before this item", "details": {}},
                    )

            if aborted or outcome.failure_ratio > tolerance:
                batch_tx.rollback()
                outcome.rolled_back = True
                for evaluation_id, item in outcome.results.items():
                    if item.ok:
                        outcome.results[evaluation_id] = BatchItemOutcome(
                            evaluation_id,
                            BatchItemStatus.ROLLED_BACK,
                            error={
                                "code": "ROLLED_BACK",
                                "message": "Batch rolled back; nothing was stored",
                                "details": {},
                            },
                        )
                logger.warning(
                    "batch aggregation rolled back",
                    extra={"failed": outcome.failed, "total": len(ids), "tolerance": tolerance},
                )
            else:
                batch_tx.commit()
        except Exception:
            if batch_tx.is_active:
                batch_tx.rollback()
            raise

        logger.info(
            "batch aggregation finished",
            extra={"succeeded": outcome.succeeded, "failed": outcome.failed, "rolled_back": outcome.rolled_back},
        )
        return Ok(outcome)

    def refresh_if_stale(self, evaluation: Evaluation, actor: User | None = None) -> bool:
        """Re-aggregate when never aggregated or when newer evidence exists. Returns True if it ran."""
        stale = evaluation.evidence_aggregated_at is None
        if not stale and isinstance(self.evidence_source, SqlEvidenceSource):
            stale = self.evidence_source.has_entries_created_since(
                evaluation.employee_id, evaluation.evidence_aggregated_at
            )
        if stale:
            self.aggregate_evaluation(evaluation, actor=actor)
        return stale

    def aggregation_stats(self, period_id: int) -> dict:
        """Period-wide rollup of evidence ratings."""
        self.periods.get(period_id)
        rating = Evaluation.evidence_rating
        base = self.db.query(Evaluation).filter(Evaluation.period_id == period_id)

        total, with_evidence, avg_rating = base.with_entities(
            func.count(Evaluation.id),
            func.sum(case((rating > 0, 1), else_=0)),
            func.avg(case((rating > 0, rating), else_=None)),
        ).one()
        total = int(total or 0)
        with_evidence = int(with_evidence or 0)

        distribution: dict[str, int] = {}
        for (value,) in base.filter(rating > 0).with_entities(rating).all():
            label = performance_indicator(value)
            distribution[label] = distribution.get(label, 0) + 1

        return {
            "period_id": period_id,
            "total_evaluations": total,
            "evaluations_with_evidence": with_evidence,
            "coverage_percentage": round2(with_evidence * 100.0 / total) if total else 0.0,
            "avg_evidence_rating": round2(float(avg_rating)) if avg_rating is not None else 0.0,
            "rating_distribution": distribution,
        }
