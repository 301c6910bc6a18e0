from datetime import date, timedelta

from evidence_engine.core.enums import ConfidenceLevel, Dimension, EvaluationType, utcnow
from evidence_engine.core.errors import InvalidArgument, InvalidPeriod, NotFound
from evidence_engine.models.audit_event import AuditEvent
from evidence_engine.models.evaluation_evidence_result import EvaluationEvidenceResult
from evidence_engine.services.aggregator import BatchItemStatus, EvidenceAggregator, Period
from evidence_engine.services.repository import SqlEvaluationRepository

from tests.helpers import (
    PERIOD_END,
    PERIOD_START,
    add_evidence,
    create_employee,
    create_evaluation,
    create_period,
    create_user,
)


def _setup(db):
    hr = create_user(db, "hr@local.test", "HR", is_admin=True)
    boss = create_employee(db, "M1", "Boss", user=create_user(db, "boss@local.test"))
    emp = create_employee(db, "E1", "Emp", user=create_user(db, "emp@local.test"), manager=boss)
    period = create_period(db, created_by=hr)
    evaluation = create_evaluation(db, emp, period)
    return hr, boss, emp, period, evaluation


def _result_rows(db, evaluation_id):
    return [
        (r.dimension, r.entry_count, r.avg_rating, r.positive_count, r.negative_count, r.calculated_score)
        for r in SqlEvaluationRepository(db).get_dimension_results(evaluation_id)
    ]


def test_zero_evidence_fills_all_dimensions(db_session):
    _, _, emp, period, evaluation = _setup(db_session)

    outcome = EvidenceAggregator(db_session).aggregate(evaluation.id, emp.id, period).unwrap()

    assert outcome.overall_rating == 0.0
    assert outcome.confidence_level is ConfidenceLevel.NONE
    assert outcome.coverage_score == 0.0
    assert _result_rows(db_session, evaluation.id) == [
        ("responsibilities", 0, 0.0, 0, 0, 0.0),
        ("kpis", 0, 0.0, 0, 0, 0.0),
        ("competencies", 0, 0.0, 0, 0, 0.0),
        ("values", 0, 0.0, 0, 0, 0.0),
    ]
    db_session.refresh(evaluation)
    assert evaluation.evidence_rating == 0.0
    assert evaluation.evidence_aggregated_at is not None


def test_aggregate_scores_and_persists(db_session):
    _, boss, emp, period, evaluation = _setup(db_session)
    add_evidence(db_session, emp, Dimension.KPIS, [5, 4, 5, 4], manager=boss)
    add_evidence(db_session, emp, Dimension.COMPETENCIES, [3], manager=boss)

    outcome = EvidenceAggregator(db_session).aggregate(evaluation.id, emp.id, period).unwrap()

    by_dim = {r.dimension: r for r in outcome.per_dimension_results}
    # 4.5 * 0.85 * 1.2
    assert by_dim[Dimension.KPIS].calculated_score == 4.59
    # 3.0 * 0.5 * 1.0
    assert by_dim[Dimension.COMPETENCIES].calculated_score == 1.5
    # 4.59 * 0.30 + 1.5 * 0.25
    assert outcome.overall_rating == 1.75
    assert outcome.coverage_score == 0.5
    assert outcome.total_entries == 5
    assert outcome.average_confidence == 0.675
    assert outcome.confidence_level is ConfidenceLevel.MODERATE

    db_session.refresh(evaluation)
    assert evaluation.evidence_rating == 1.75
    assert "KPIs: 4.59" in evaluation.evidence_summary
    assert "Values: collect evidence" in evaluation.evidence_summary
    assert "Competencies: development area" in evaluation.evidence_summary
    assert "KPIs: strength" in evaluation.evidence_summary

    events = db_session.query(AuditEvent).filter(AuditEvent.action == "EVIDENCE_AGGREGATED").all()
    assert len(events) == 1
    assert events[0].entity_id == evaluation.id


def test_reaggregation_is_idempotent(db_session):
    _, boss, emp, period, evaluation = _setup(db_session)
    add_evidence(db_session, emp, Dimension.RESPONSIBILITIES, [4, 2, 3], manager=boss)
    aggregator = EvidenceAggregator(db_session)

    aggregator.aggregate(evaluation.id, emp.id, period).unwrap()
    first = _result_rows(db_session, evaluation.id)
    aggregator.aggregate(evaluation.id, emp.id, period).unwrap()
    second = _result_rows(db_session, evaluation.id)

    assert first == second
    assert (
        db_session.query(EvaluationEvidenceResult)
        .filter(EvaluationEvidenceResult.evaluation_id == evaluation.id)
        .count()
        == 4
    )


def test_evidence_outside_period_is_ignored(db_session):
    _, _, emp, period, evaluation = _setup(db_session)
    add_evidence(db_session, emp, Dimension.KPIS, [5, 5], entry_date=date(2025, 11, 1))

    outcome = EvidenceAggregator(db_session).aggregate(evaluation.id, emp.id, period).unwrap()
    assert outcome.total_entries == 0


def test_inverted_period_is_rejected(db_session):
    _, _, emp, _, evaluation = _setup(db_session)
    bad = Period(start_date=PERIOD_END, end_date=PERIOD_START)

    result = EvidenceAggregator(db_session).aggregate(evaluation.id, emp.id, bad)

    assert not result.ok
    assert isinstance(result.error, InvalidPeriod)
    assert _result_rows(db_session, evaluation.id) == []


def test_bad_identifiers_are_rejected(db_session):
    _, _, emp, period, evaluation = _setup(db_session)
    aggregator = EvidenceAggregator(db_session)

    for evaluation_id, employee_id in [(0, emp.id), (evaluation.id, -1), ("7", emp.id), (True, emp.id)]:
        result = aggregator.aggregate(evaluation_id, employee_id, period)
        assert isinstance(result.error, InvalidArgument)

    result = aggregator.aggregate(evaluation.id, emp.id, object())
    assert isinstance(result.error, InvalidArgument)


def test_missing_evaluation_and_wrong_employee(db_session):
    _, boss, emp, period, evaluation = _setup(db_session)
    aggregator = EvidenceAggregator(db_session)

    assert isinstance(aggregator.aggregate(999999, emp.id, period).error, NotFound)
    assert isinstance(aggregator.aggregate(evaluation.id, boss.id, period).error, InvalidArgument)


def test_batch_aggregate_records_per_item_failures(db_session):
    _, boss, emp, period, evaluation = _setup(db_session)
    other = create_evaluation(db_session, boss, period)
    add_evidence(db_session, emp, Dimension.KPIS, [4, 4])

    outcome = EvidenceAggregator(db_session).batch_aggregate([evaluation.id, 999999, other.id]).unwrap()

    assert outcome.succeeded == 2
    assert outcome.failed == 1
    assert not outcome.rolled_back
    assert outcome.results[999999].error["code"] == "NOT_FOUND"
    assert outcome.results[evaluation.id].outcome.total_entries == 2
    assert len(_result_rows(db_session, other.id)) == 4


def test_batch_rolls_back_when_failures_exceed_tolerance(db_session):
    _, _, emp, period, evaluation = _setup(db_session)

    outcome = EvidenceAggregator(db_session, failure_tolerance=0.2).batch_aggregate(
        [evaluation.id, 999998, 999999]
    ).unwrap()

    assert outcome.rolled_back
    assert outcome.failed == 2
    assert outcome.succeeded == 0
    item = outcome.results[evaluation.id]
    assert item.status is BatchItemStatus.ROLLED_BACK
    assert not item.ok
    assert item.outcome is None
    assert item.error["code"] == "ROLLED_BACK"
    assert outcome.results[999998].status is BatchItemStatus.FAILED
    assert _result_rows(db_session, evaluation.id) == []
    db_session.refresh(evaluation)
    assert evaluation.evidence_rating is None


def test_batch_abort_on_error_stops_and_rolls_back(db_session):
    _, _, emp, period, evaluation = _setup(db_session)

    outcome = EvidenceAggregator(db_session).batch_aggregate(
        [999999, evaluation.id], abort_on_error=True
    ).unwrap()

    assert outcome.rolled_back
    assert outcome.results[evaluation.id].error["code"] == "ABORTED"
    assert outcome.results[evaluation.id].status is BatchItemStatus.ABORTED
    assert outcome.results[999999].status is BatchItemStatus.FAILED
    assert _result_rows(db_session, evaluation.id) == []


def test_batch_rejects_bad_input(db_session):
    aggregator = EvidenceAggregator(db_session)

    assert isinstance(aggregator.batch_aggregate([]).error, InvalidArgument)
    assert isinstance(aggregator.batch_aggregate([1, 0]).error, InvalidArgument)
    assert isinstance(aggregator.batch_aggregate([1], failure_tolerance=1.5).error, InvalidArgument)


def test_refresh_if_stale(db_session):
    _, _, emp, period, evaluation = _setup(db_session)
    aggregator = EvidenceAggregator(db_session)

    # never aggregated
    assert aggregator.refresh_if_stale(evaluation) is True
    assert aggregator.refresh_if_stale(evaluation) is False

    add_evidence(
        db_session, emp, Dimension.VALUES, [5], created_at=utcnow() + timedelta(minutes=5)
    )
    assert aggregator.refresh_if_stale(evaluation) is True
    db_session.refresh(evaluation)
    assert evaluation.evidence_rating > 0


def test_aggregation_stats(db_session):
    _, boss, emp, period, evaluation = _setup(db_session)
    manager_eval = create_evaluation(db_session, boss, period)
    add_evidence(db_session, emp, Dimension.KPIS, [5, 4, 5, 4])
    add_evidence(db_session, emp, Dimension.COMPETENCIES, [3])

    aggregator = EvidenceAggregator(db_session)
    aggregator.batch_aggregate([evaluation.id, manager_eval.id]).unwrap()

    stats = aggregator.aggregation_stats(period.id)
    assert stats["total_evaluations"] == 2
    assert stats["evaluations_with_evidence"] == 1
    assert stats["coverage_percentage"] == 50.0
    assert stats["avg_evidence_rating"] == 1.75
    assert stats["rating_distribution"] == {"Needs Improvement": 1}


def test_evaluation_type_does_not_matter_for_aggregation(db_session):
    _, _, emp, period, evaluation = _setup(db_session)
    manager_eval = create_evaluation(
        db_session,
        emp,
        period,
        evaluation_type=EvaluationType.MANAGER,
        self_evaluation=evaluation,
    )
    add_evidence(db_session, emp, Dimension.VALUES, [4, 4])

    aggregator = EvidenceAggregator(db_session)
    a = aggregator.aggregate(evaluation.id, emp.id, period).unwrap()
    b = aggregator.aggregate(manager_eval.id, emp.id, period).unwrap()
    assert a.overall_rating == b.overall_rating
