from datetime import datetime

from pydantic import BaseModel


class CycleInitializationOut(BaseModel):
    period_id: int
    period_status: str
    created_evaluation_ids: list[int]
    skipped_employee_ids: list[int]


class WorkflowStatusOut(BaseModel):
    employee_id: int
    period_id: int
    current_phase: str
    has_self: bool
    has_manager: bool
    has_final: bool
    self_state: str | None
    manager_state: str | None
    final_state: str | None
    self_submitted_at: datetime | None
    manager_submitted_at: datetime | None
    final_delivered_at: datetime | None
    evaluation_ids: dict[str, int]
