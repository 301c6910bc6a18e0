from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from evidence_engine.core.enums import WorkflowState


class EvaluationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    evaluator_id: int | None
    manager_id: int | None
    period_id: int
    evaluation_type: str
    workflow_state: str
    self_evaluation_id: int | None

    expected_results_score: float | None
    skills_competencies_score: float | None
    key_responsibilities_score: float | None
    living_values_score: float | None
    overall_rating: float | None
    overall_comments: str | None

    evidence_rating: float | None
    evidence_summary: str | None
    evidence_aggregated_at: datetime | None

    self_submitted_at: datetime | None
    manager_submitted_at: datetime | None
    final_delivered_at: datetime | None
    created_at: datetime
    updated_at: datetime
    version: int


class SectionScoresPayload(BaseModel):
    """Omitted fields are left unchanged; an explicit null clears a score."""

    expected_results_score: float | None = Field(default=None, ge=0, le=5)
    skills_competencies_score: float | None = Field(default=None, ge=0, le=5)
    key_responsibilities_score: float | None = Field(default=None, ge=0, le=5)
    living_values_score: float | None = Field(default=None, ge=0, le=5)
    overall_rating: float | None = Field(default=None, ge=0, le=5)
    overall_comments: str | None = Field(default=None, max_length=10000)


class AdvancePayload(BaseModel):
    target_state: WorkflowState


class FinalEvaluationPayload(BaseModel):
    self_evaluation_id: int = Field(gt=0)
    manager_evaluation_id: int = Field(gt=0)


class ManagerSubmissionOut(BaseModel):
    manager_evaluation: EvaluationOut
    final_evaluation: EvaluationOut


class TransitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    evaluation_id: int
    from_state: str | None
    to_state: str
    actor_user_id: int | None
    changed_at: datetime
