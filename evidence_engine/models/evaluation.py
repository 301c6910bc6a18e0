from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from evidence_engine.core.enums import EvaluationType, WorkflowState, sql_in, utcnow
from evidence_engine.db.base import Base


class Evaluation(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        # One evaluation per (employee, period, type)
        UniqueConstraint("employee_id", "period_id", "evaluation_type", name="uq_evaluations_employee_period_type"),
        CheckConstraint(
            f"evaluation_type IN ({sql_in(EvaluationType)})",
            name="ck_evaluations_type",
        ),
        CheckConstraint(
            f"workflow_state IN ({sql_in(WorkflowState)})",
            name="ck_evaluations_workflow_state",
        ),
        # A self evaluation never points at another evaluation
        CheckConstraint(
            "(evaluation_type <> 'self') OR (self_evaluation_id IS NULL)",
            name="ck_evaluations_self_ref",
        ),
        CheckConstraint(
            "(evaluation_type = 'self') OR (self_evaluation_id IS NOT NULL)",
            name="ck_evaluations_later_stage_ref",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    evaluator_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    manager_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    period_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("evaluation_periods.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    evaluation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    workflow_state: Mapped[str] = mapped_column(String(30), nullable=False)

    # RESTRICT: a self evaluation can't be deleted while manager/final rows reference it
    self_evaluation_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("evaluations.id", ondelete="RESTRICT"), nullable=True
    )

    expected_results_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    skills_competencies_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    key_responsibilities_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    living_values_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    overall_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    overall_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    evidence_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    evidence_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_aggregated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    self_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    manager_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    final_delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}

    @property
    def type(self) -> EvaluationType:
        return EvaluationType(self.evaluation_type)

    @property
    def state(self) -> WorkflowState:
        return WorkflowState(self.workflow_state)
