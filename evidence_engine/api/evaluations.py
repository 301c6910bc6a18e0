from contextlib import contextmanager

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from evidence_engine.api.deps import get_aggregator, get_workflow, unwrap_or_http
from evidence_engine.core.enums import SECTIONS, Section
from evidence_engine.core.optimistic_lock import check_version, set_etag
from evidence_engine.core.security import assert_can_edit, get_current_user
from evidence_engine.db.session import get_db
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.user import User
from evidence_engine.schemas.aggregation import (
    AggregationOut,
    BatchAggregateOut,
    BatchAggregatePayload,
    BatchItemOut,
    DimensionResultOut,
    StoredDimensionResultOut,
)
from evidence_engine.schemas.evaluation import (
    AdvancePayload,
    EvaluationOut,
    FinalEvaluationPayload,
    ManagerSubmissionOut,
    SectionScoresPayload,
    TransitionOut,
)
from evidence_engine.services.aggregator import AggregationOutcome, EvidenceAggregator
from evidence_engine.services.repository import SqlEvaluationRepository
from evidence_engine.services.scoring import performance_indicator
from evidence_engine.services.workflow import WorkflowEngine

router = APIRouter(prefix="/evaluations", tags=["evaluations"])


def eval_to_out(e: Evaluation) -> EvaluationOut:
    return EvaluationOut.model_validate(e)


def outcome_to_out(o: AggregationOutcome) -> AggregationOut:
    return AggregationOut(
        evaluation_id=o.evaluation_id,
        overall_rating=o.overall_rating,
        performance=performance_indicator(o.overall_rating),
        confidence_level=o.confidence_level.value,
        coverage_score=o.coverage_score,
        total_entries=o.total_entries,
        average_confidence=o.average_confidence,
        per_dimension_results=[
            DimensionResultOut(
                dimension=r.dimension.value,
                section=r.dimension.section.value,
                entry_count=r.entry_count,
                avg_rating=r.avg_rating,
                positive_count=r.positive_count,
                negative_count=r.negative_count,
                calculated_score=r.calculated_score,
                performance=performance_indicator(r.calculated_score),
            )
            for r in o.per_dimension_results
        ],
        summary=o.summary,
    )


def _get_evaluation_or_404(db: Session, evaluation_id: int) -> Evaluation:
    e = db.get(Evaluation, evaluation_id)
    if not e:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    return e


def _check_version(db: Session, evaluation_id: int, if_match: str | None) -> None:
    if if_match is not None:
        check_version(_get_evaluation_or_404(db, evaluation_id).version, if_match)


@contextmanager
def _stale_as_conflict():
    try:
        yield
    except StaleDataError:
        raise HTTPException(status_code=409, detail="Evaluation was modified by another request")


@router.post("/aggregate-batch", response_model=BatchAggregateOut)
def aggregate_batch(
    payload: BatchAggregatePayload,
    user: User = Depends(get_current_user),
    aggregator: EvidenceAggregator = Depends(get_aggregator),
):
    outcome = unwrap_or_http(
        aggregator.batch_aggregate(
            payload.evaluation_ids,
            actor=user,
            abort_on_error=payload.abort_on_error,
            failure_tolerance=payload.failure_tolerance,
        )
    )
    return BatchAggregateOut(
        succeeded=outcome.succeeded,
        failed=outcome.failed,
        rolled_back=outcome.rolled_back,
        results=[
            BatchItemOut(
                evaluation_id=item.evaluation_id,
                ok=item.ok,
                status=item.status.value,
                overall_rating=item.outcome.overall_rating if item.outcome else None,
                error=item.error,
            )
            for item in outcome.results.values()
        ],
    )


@router.post("/final", response_model=EvaluationOut, status_code=201)
def create_final_evaluation(
    payload: FinalEvaluationPayload,
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    final = unwrap_or_http(
        workflow.generate_final_evaluation(
            payload.self_evaluation_id, payload.manager_evaluation_id, actor=user
        )
    )
    return eval_to_out(final)


@router.get("/{evaluation_id}", response_model=EvaluationOut)
def get_evaluation(
    evaluation_id: int,
    response: Response,
    refresh: bool = Query(default=True, description="Re-aggregate when newer evidence exists"),
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    e = unwrap_or_http(workflow.get_evaluation(evaluation_id, actor=user, refresh_if_stale=refresh))
    set_etag(response, e.version)
    return eval_to_out(e)


@router.post("/{evaluation_id}/aggregate", response_model=AggregationOut)
def aggregate_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    aggregator: EvidenceAggregator = Depends(get_aggregator),
):
    e = _get_evaluation_or_404(db, evaluation_id)
    period = db.get(EvaluationPeriod, e.period_id)
    outcome = unwrap_or_http(aggregator.aggregate(e.id, e.employee_id, period, actor=user))
    return outcome_to_out(outcome)


@router.get("/{evaluation_id}/evidence-results", response_model=list[StoredDimensionResultOut])
def list_evidence_results(
    evaluation_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    _get_evaluation_or_404(db, evaluation_id)
    rows = SqlEvaluationRepository(db).get_dimension_results(evaluation_id)
    return [StoredDimensionResultOut.model_validate(r) for r in rows]


@router.put("/{evaluation_id}/scores", response_model=EvaluationOut)
def record_scores(
    evaluation_id: int,
    payload: SectionScoresPayload,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    assert_can_edit(user, _get_evaluation_or_404(db, evaluation_id))
    _check_version(db, evaluation_id, if_match)

    provided = payload.model_fields_set
    scores: dict[Section, float | None] = {
        s: getattr(payload, s.score_field) for s in SECTIONS if s.score_field in provided
    }
    with _stale_as_conflict():
        e = unwrap_or_http(
            workflow.record_section_scores(
                evaluation_id,
                scores,
                actor=user,
                overall_rating=payload.overall_rating,
                overall_comments=payload.overall_comments,
            )
        )
    set_etag(response, e.version)
    return eval_to_out(e)


@router.post("/{evaluation_id}/submit-self", response_model=EvaluationOut)
def submit_self_evaluation(
    evaluation_id: int,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    _check_version(db, evaluation_id, if_match)
    with _stale_as_conflict():
        e = unwrap_or_http(workflow.submit_self_evaluation(evaluation_id, actor=user))
    set_etag(response, e.version)
    return eval_to_out(e)


@router.post("/{evaluation_id}/manager-evaluation", response_model=EvaluationOut, status_code=201)
def create_manager_evaluation(
    evaluation_id: int,
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    e = unwrap_or_http(workflow.create_manager_evaluation(evaluation_id, actor=user))
    return eval_to_out(e)


@router.post("/{evaluation_id}/submit-manager", response_model=ManagerSubmissionOut)
def submit_manager_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    _check_version(db, evaluation_id, if_match)
    with _stale_as_conflict():
        submission = unwrap_or_http(workflow.submit_manager_evaluation(evaluation_id, actor=user))
    return ManagerSubmissionOut(
        manager_evaluation=eval_to_out(submission.manager_evaluation),
        final_evaluation=eval_to_out(submission.final_evaluation),
    )


@router.post("/{evaluation_id}/advance", response_model=EvaluationOut)
def advance_evaluation(
    evaluation_id: int,
    payload: AdvancePayload,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    _check_version(db, evaluation_id, if_match)
    with _stale_as_conflict():
        e = unwrap_or_http(workflow.advance(evaluation_id, payload.target_state, actor=user))
    set_etag(response, e.version)
    return eval_to_out(e)


@router.get("/{evaluation_id}/transitions", response_model=list[TransitionOut])
def list_transitions(
    evaluation_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    _get_evaluation_or_404(db, evaluation_id)
    return [TransitionOut.model_validate(t) for t in workflow.list_transitions(evaluation_id)]
