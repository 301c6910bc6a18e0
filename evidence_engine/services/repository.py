from __future__ import annotations

from typing import Any, Iterable, Protocol, Sequence

from sqlalchemy.orm import Session

from evidence_engine.core.enums import DIMENSIONS, EvaluationType
from evidence_engine.core.errors import InvalidArgument, NotFound
from evidence_engine.models.employee import Employee
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.evaluation_evidence_result import EvaluationEvidenceResult
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.user import User
from evidence_engine.services.scoring import DimensionScore


class EvaluationRepository(Protocol):
    def get(self, evaluation_id: int) -> Evaluation: ...

    def replace_dimension_results(
        self, evaluation_id: int, results: Sequence[DimensionScore]
    ) -> list[EvaluationEvidenceResult]: ...

    def update(self, evaluation_id: int, fields: dict[str, Any]) -> Evaluation: ...


class PeriodProvider(Protocol):
    def get(self, period_id: int) -> EvaluationPeriod: ...


class EmployeeDirectory(Protocol):
    def get(self, employee_id: int) -> Employee: ...


# Columns the engine may write through update(); anything else is a caller bug
UPDATABLE_FIELDS = frozenset(
    {
        "workflow_state",
        "expected_results_score",
        "skills_competencies_score",
        "key_responsibilities_score",
        "living_values_score",
        "overall_rating",
        "overall_comments",
        "evidence_rating",
        "evidence_summary",
        "evidence_aggregated_at",
        "self_submitted_at",
        "manager_submitted_at",
        "final_delivered_at",
        "manager_id",
    }
)


class SqlEvaluationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, evaluation_id: int) -> Evaluation:
        e = self.db.get(Evaluation, evaluation_id)
        if not e:
            raise NotFound("Evaluation not found", details={"evaluation_id": evaluation_id})
        return e

    def lock(self, evaluation_id: int) -> Evaluation:
        """Load with a row lock so concurrent transitions on the same id serialize."""
        e = (
            self.db.query(Evaluation)
            .filter(Evaluation.id == evaluation_id)
            .with_for_update()
            .one_or_none()
        )
        if not e:
            raise NotFound("Evaluation not found", details={"evaluation_id": evaluation_id})
        return e

    def find(self, employee_id: int, period_id: int, evaluation_type: EvaluationType) -> Evaluation | None:
        return (
            self.db.query(Evaluation)
            .filter(
                Evaluation.employee_id == employee_id,
                Evaluation.period_id == period_id,
                Evaluation.evaluation_type == evaluation_type.value,
            )
            .one_or_none()
        )

    def for_employee_period(self, employee_id: int, period_id: int) -> list[Evaluation]:
        return (
            self.db.query(Evaluation)
            .filter(Evaluation.employee_id == employee_id, Evaluation.period_id == period_id)
            .order_by(Evaluation.id)
            .all()
        )

    def create(self, **fields: Any) -> Evaluation:
        e = Evaluation(**fields)
        self.db.add(e)
        self.db.flush()  # assigns id
        return e

    def update(self, evaluation_id: int, fields: dict[str, Any]) -> Evaluation:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgument("Unknown evaluation fields", details={"fields": sorted(unknown)})

        e = self.get(evaluation_id)
        for key, value in fields.items():
            setattr(e, key, value)
        self.db.flush()  # bumps version
        return e

    def get_dimension_results(self, evaluation_id: int) -> list[EvaluationEvidenceResult]:
        rows = (
            self.db.query(EvaluationEvidenceResult)
            .filter(EvaluationEvidenceResult.evaluation_id == evaluation_id)
            .all()
        )
        order = {d.value: i for i, d in enumerate(DIMENSIONS)}
        return sorted(rows, key=lambda r: order.get(r.dimension, len(order)))

    def replace_dimension_results(
        self, evaluation_id: int, results: Iterable[DimensionScore]
    ) -> list[EvaluationEvidenceResult]:
        """Full replace: every existing row for the evaluation goes, the new set comes in."""
        with self.db.begin_nested():
            self.db.flush()
            (
                self.db.query(EvaluationEvidenceResult)
                .filter(EvaluationEvidenceResult.evaluation_id == evaluation_id)
                .delete(synchronize_session="fetch")
            )
            rows = [
                EvaluationEvidenceResult(evaluation_id=evaluation_id, **r.as_row())
                for r in results
            ]
            self.db.add_all(rows)
            self.db.flush()
        return rows


class SqlPeriodProvider:
    def __init__(self, db: Session):
        self.db = db

    def get(self, period_id: int) -> EvaluationPeriod:
        p = self.db.get(EvaluationPeriod, period_id)
        if not p:
            raise NotFound("Evaluation period not found", details={"period_id": period_id})
        return p


class SqlEmployeeDirectory:
    def __init__(self, db: Session):
        self.db = db

    def get(self, employee_id: int) -> Employee:
        emp = self.db.get(Employee, employee_id)
        if not emp:
            raise NotFound("Employee not found", details={"employee_id": employee_id})
        return emp

    def active_employees(self) -> list[Employee]:
        return (
            self.db.query(Employee)
            .filter(Employee.is_active.is_(True))
            .order_by(Employee.id)
            .all()
        )

    def for_user(self, user: User | None) -> Employee | None:
        if user is None:
            return None
        return self.db.query(Employee).filter(Employee.user_id == user.id).one_or_none()
