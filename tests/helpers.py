from datetime import date, datetime

from sqlalchemy.orm import Session

from evidence_engine.core.enums import Dimension, EvaluationType, PeriodStatus, WorkflowState
from evidence_engine.models.employee import Employee
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.evidence_entry import EvidenceEntry
from evidence_engine.models.user import User

PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 6, 30)


def create_user(db, email: str, full_name="User", is_admin=False) -> User:
    u = User(email=email, full_name=full_name, is_active=True, is_admin=is_admin)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_employee(
    db,
    employee_number: str,
    display_name: str,
    user: User | None = None,
    manager: Employee | None = None,
    is_active: bool = True,
) -> Employee:
    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        user_id=(user.id if user else None),
        manager_id=(manager.id if manager else None),
        is_active=is_active,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def create_period(
    db,
    created_by: User | None = None,
    status: str = PeriodStatus.DRAFT.value,
    start_date: date = PERIOD_START,
    end_date: date = PERIOD_END,
    name: str = "H1 2026",
) -> EvaluationPeriod:
    p = EvaluationPeriod(
        name=name,
        start_date=start_date,
        end_date=end_date,
        status=status,
        created_by_user_id=(created_by.id if created_by else None),
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def add_evidence(
    db: Session,
    employee: Employee,
    dimension: Dimension | str,
    stars: list[int],
    *,
    manager: Employee | None = None,
    entry_date: date = date(2026, 3, 1),
    created_at: datetime | None = None,
    content: str = "Observed during sprint review",
) -> list[EvidenceEntry]:
    rows = []
    for star in stars:
        row = EvidenceEntry(
            employee_id=employee.id,
            manager_id=(manager.id if manager else None),
            dimension=getattr(dimension, "value", dimension),
            star_rating=star,
            content=content,
            entry_date=entry_date,
        )
        if created_at is not None:
            row.created_at = created_at
        rows.append(row)
    db.add_all(rows)
    db.commit()
    return rows


def create_evaluation(
    db: Session,
    employee: Employee,
    period: EvaluationPeriod,
    *,
    evaluation_type: EvaluationType = EvaluationType.SELF,
    workflow_state: WorkflowState = WorkflowState.PENDING_SELF,
    self_evaluation: Evaluation | None = None,
    evaluator: User | None = None,
    **fields,
) -> Evaluation:
    e = Evaluation(
        employee_id=employee.id,
        period_id=period.id,
        evaluator_id=(evaluator.id if evaluator else employee.user_id),
        manager_id=employee.manager_id,
        evaluation_type=evaluation_type.value,
        workflow_state=workflow_state.value,
        self_evaluation_id=(self_evaluation.id if self_evaluation else None),
        **fields,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def full_scores(value: float) -> dict:
    return {
        "expected_results_score": value,
        "skills_competencies_score": value,
        "key_responsibilities_score": value,
        "living_values_score": value,
        "overall_rating": value,
    }


class RecordingSink:
    """NotificationSink that keeps what it was asked to send."""

    def __init__(self):
        self.sent = []

    def notify(self, event, *, recipient_user_id, evaluation_id, context=None):
        self.sent.append((event, recipient_user_id, evaluation_id))

    def events(self):
        return [e for e, _, _ in self.sent]
