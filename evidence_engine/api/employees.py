from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from evidence_engine.api.deps import get_workflow, unwrap_or_http
from evidence_engine.core.enums import utcnow
from evidence_engine.core.security import get_current_user
from evidence_engine.db.session import get_db
from evidence_engine.models.employee import Employee
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.user import User
from evidence_engine.schemas.aggregation import EvidenceQualityOut
from evidence_engine.schemas.employee import EmployeeOut
from evidence_engine.schemas.workflow import WorkflowStatusOut
from evidence_engine.services.evidence_source import SqlEvidenceSource
from evidence_engine.services.workflow import WorkflowEngine

router = APIRouter(prefix="/employees", tags=["employees"])


def _get_employee_or_404(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.get("", response_model=list[EmployeeOut])
def list_employees(
    search: str | None = Query(default=None, description="Search by employee number or display name"),
    active_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(Employee)

    if search:
        search_term = f"%{search.lower()}%"
        query = query.filter(
            (Employee.employee_number.ilike(search_term))
            | (Employee.display_name.ilike(search_term))
        )
    if active_only:
        query = query.filter(Employee.is_active.is_(True))

    employees = query.order_by(Employee.display_name.asc()).offset(offset).limit(limit).all()
    return [EmployeeOut.model_validate(e) for e in employees]


@router.get("/{employee_id}", response_model=EmployeeOut)
def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return EmployeeOut.model_validate(_get_employee_or_404(db, employee_id))


@router.get("/{employee_id}/workflow-status", response_model=WorkflowStatusOut)
def workflow_status(
    employee_id: int,
    period_id: int = Query(..., gt=0),
    _: User = Depends(get_current_user),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    status = unwrap_or_http(workflow.get_workflow_status(employee_id, period_id))
    return WorkflowStatusOut(
        employee_id=status.employee_id,
        period_id=status.period_id,
        current_phase=status.current_phase.value,
        has_self=status.has_self,
        has_manager=status.has_manager,
        has_final=status.has_final,
        self_state=status.self_state,
        manager_state=status.manager_state,
        final_state=status.final_state,
        self_submitted_at=status.self_submitted_at,
        manager_submitted_at=status.manager_submitted_at,
        final_delivered_at=status.final_delivered_at,
        evaluation_ids=status.evaluation_ids,
    )


@router.get("/{employee_id}/evidence-quality", response_model=EvidenceQualityOut)
def evidence_quality(
    employee_id: int,
    period_id: int | None = Query(default=None, gt=0),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """Quality metrics and consistency issues for an employee's evidence, optionally within a period."""
    _get_employee_or_404(db, employee_id)

    start = end = None
    if period_id is not None:
        period = db.get(EvaluationPeriod, period_id)
        if not period:
            raise HTTPException(status_code=404, detail="Evaluation period not found")
        start, end = period.start_date, period.end_date

    source = SqlEvidenceSource(db)
    metrics = source.get_quality_metrics(employee_id, start, end)
    report = source.validate_consistency(employee_id, start, end, today=utcnow().date())
    weighted = {}
    if start and end:
        weighted = {d.value: v for d, v in source.get_recency_weighted_ratings(employee_id, start, end).items()}

    return EvidenceQualityOut(
        employee_id=employee_id,
        period_id=period_id,
        total_entries=metrics.total_entries,
        dimensions_covered=metrics.dimensions_covered,
        unique_evaluators=metrics.unique_evaluators,
        avg_content_length=metrics.avg_content_length,
        consistent=report.valid,
        issues=report.issues,
        recency_weighted_ratings=weighted,
    )
