"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("employee_number", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_employees_employee_number", "employees", ["employee_number"], unique=True)

    op.create_table(
        "evaluation_periods",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('draft','active','closed')", name="ck_evaluation_periods_status"),
    )

    op.create_table(
        "evidence_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("dimension", sa.String(30), nullable=False),
        sa.Column("star_rating", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_evidence_entries_employee_date", "evidence_entries", ["employee_id", "entry_date"])

    op.create_table(
        "evaluations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("evaluator_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "period_id", sa.Integer(), sa.ForeignKey("evaluation_periods.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("evaluation_type", sa.String(20), nullable=False),
        sa.Column("workflow_state", sa.String(30), nullable=False),
        sa.Column(
            "self_evaluation_id", sa.Integer(), sa.ForeignKey("evaluations.id", ondelete="RESTRICT"), nullable=True
        ),
        sa.Column("expected_results_score", sa.Float(), nullable=True),
        sa.Column("skills_competencies_score", sa.Float(), nullable=True),
        sa.Column("key_responsibilities_score", sa.Float(), nullable=True),
        sa.Column("living_values_score", sa.Float(), nullable=True),
        sa.Column("overall_rating", sa.Float(), nullable=True),
        sa.Column("overall_comments", sa.Text(), nullable=True),
        sa.Column("evidence_rating", sa.Float(), nullable=True),
        sa.Column("evidence_summary", sa.Text(), nullable=True),
        sa.Column("evidence_aggregated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("self_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("final_delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("employee_id", "period_id", "evaluation_type", name="uq_evaluations_employee_period_type"),
        sa.CheckConstraint("evaluation_type IN ('self','manager','final')", name="ck_evaluations_type"),
        sa.CheckConstraint(
            "workflow_state IN ('pending_self','self_submitted','pending_manager','manager_submitted','final_delivered')",
            name="ck_evaluations_workflow_state",
        ),
        sa.CheckConstraint(
            "(evaluation_type <> 'self') OR (self_evaluation_id IS NULL)", name="ck_evaluations_self_ref"
        ),
        sa.CheckConstraint(
            "(evaluation_type = 'self') OR (self_evaluation_id IS NOT NULL)", name="ck_evaluations_later_stage_ref"
        ),
    )
    op.create_index("ix_evaluations_employee_id", "evaluations", ["employee_id"])
    op.create_index("ix_evaluations_period_id", "evaluations", ["period_id"])

    op.create_table(
        "evaluation_evidence_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("evaluation_id", sa.Integer(), sa.ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("dimension", sa.String(30), nullable=False),
        sa.Column("entry_count", sa.Integer(), nullable=False),
        sa.Column("avg_rating", sa.Float(), nullable=False),
        sa.Column("positive_count", sa.Integer(), nullable=False),
        sa.Column("negative_count", sa.Integer(), nullable=False),
        sa.Column("calculated_score", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("evaluation_id", "dimension", name="uq_evidence_result_eval_dimension"),
        sa.CheckConstraint(
            "dimension IN ('responsibilities','kpis','competencies','values')", name="ck_evidence_results_dimension"
        ),
        sa.CheckConstraint(
            "calculated_score >= 0 AND calculated_score <= 5", name="ck_evidence_results_score_range"
        ),
    )
    op.create_index(
        "ix_evaluation_evidence_results_evaluation_id", "evaluation_evidence_results", ["evaluation_id"]
    )

    op.create_table(
        "evaluation_workflow_transitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("evaluation_id", sa.Integer(), sa.ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_state", sa.String(30), nullable=True),
        sa.Column("to_state", sa.String(30), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_evaluation_workflow_transitions_evaluation_id", "evaluation_workflow_transitions", ["evaluation_id"]
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("event_metadata", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("ix_evaluation_workflow_transitions_evaluation_id", table_name="evaluation_workflow_transitions")
    op.drop_table("evaluation_workflow_transitions")
    op.drop_index("ix_evaluation_evidence_results_evaluation_id", table_name="evaluation_evidence_results")
    op.drop_table("evaluation_evidence_results")
    op.drop_index("ix_evaluations_period_id", table_name="evaluations")
    op.drop_index("ix_evaluations_employee_id", table_name="evaluations")
    op.drop_table("evaluations")
    op.drop_index("ix_evidence_entries_employee_date", table_name="evidence_entries")
    op.drop_table("evidence_entries")
    op.drop_table("evaluation_periods")
    op.drop_index("ix_employees_employee_number", table_name="employees")
    op.drop_table("employees")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
