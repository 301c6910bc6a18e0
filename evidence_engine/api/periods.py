from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from evidence_engine.api.deps import get_aggregator, get_workflow, raise_http, unwrap_or_http
from evidence_engine.core.errors import EngineError
from evidence_engine.core.security import get_current_user, require_admin
from evidence_engine.db.session import get_db
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.user import User
from evidence_engine.schemas.aggregation import AggregationStatsOut
from evidence_engine.schemas.workflow import CycleInitializationOut
from evidence_engine.services.aggregator import EvidenceAggregator
from evidence_engine.services.workflow import WorkflowEngine

router = APIRouter(prefix="/periods", tags=["evaluation-periods"])


@router.post("/{period_id}/initialize", response_model=CycleInitializationOut)
def initialize_cycle(
    period_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    """
    Create a pending self evaluation for every active employee and aggregate
    their evidence. Re-running only fills in employees that were missed.
    """
    init = unwrap_or_http(workflow.initialize_cycle(period_id, actor=user))
    period = db.get(EvaluationPeriod, period_id)
    return CycleInitializationOut(
        period_id=init.period_id,
        period_status=period.status,
        created_evaluation_ids=init.created_evaluation_ids,
        skipped_employee_ids=init.skipped_employee_ids,
    )


@router.get("/{period_id}/aggregation-stats", response_model=AggregationStatsOut)
def aggregation_stats(
    period_id: int,
    _: User = Depends(get_current_user),
    aggregator: EvidenceAggregator = Depends(get_aggregator),
):
    try:
        return AggregationStatsOut(**aggregator.aggregation_stats(period_id))
    except EngineError as e:
        raise_http(e)
