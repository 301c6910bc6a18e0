from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from evidence_engine.core.audit import AuditAction, log_event
from evidence_engine.core.enums import (
    SECTIONS,
    EvaluationType,
    PeriodStatus,
    Section,
    WorkflowPhase,
    WorkflowState,
    utcnow,
)
from evidence_engine.core.errors import (
    DuplicateEvaluation,
    IncompleteEvaluation,
    InvalidArgument,
    InvalidTransition,
)
from evidence_engine.core.result import returns_result
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.user import User
from evidence_engine.models.workflow_transition import WorkflowTransition
from evidence_engine.services.aggregator import EvidenceAggregator, validate_period
from evidence_engine.services.notifications import (
    LoggingNotificationSink,
    NotificationEvent,
    NotificationSink,
)
from evidence_engine.services.repository import (
    SqlEmployeeDirectory,
    SqlEvaluationRepository,
    SqlPeriodProvider,
)
from evidence_engine.services.scoring import MAX_SCORE, round2

logger = logging.getLogger(__name__)


# Single source of truth for legal state changes
TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.PENDING_SELF: frozenset({WorkflowState.SELF_SUBMITTED}),
    WorkflowState.SELF_SUBMITTED: frozenset({WorkflowState.PENDING_MANAGER}),
    WorkflowState.PENDING_MANAGER: frozenset({WorkflowState.MANAGER_SUBMITTED}),
    WorkflowState.MANAGER_SUBMITTED: frozenset({WorkflowState.FINAL_DELIVERED}),
    WorkflowState.FINAL_DELIVERED: frozenset(),
}

# States each evaluation type can be in
TYPE_STATES: dict[EvaluationType, frozenset[WorkflowState]] = {
    EvaluationType.SELF: frozenset(
        {WorkflowState.PENDING_SELF, WorkflowState.SELF_SUBMITTED, WorkflowState.PENDING_MANAGER}
    ),
    EvaluationType.MANAGER: frozenset({WorkflowState.PENDING_MANAGER, WorkflowState.MANAGER_SUBMITTED}),
    EvaluationType.FINAL: frozenset({WorkflowState.FINAL_DELIVERED}),
}

# Edges reachable through advance(); the rest belong to the operation named in OWNING_OPERATIONS
ADVANCEABLE: frozenset[tuple[EvaluationType, WorkflowState, WorkflowState]] = frozenset(
    {(EvaluationType.SELF, WorkflowState.SELF_SUBMITTED, WorkflowState.PENDING_MANAGER)}
)

OWNING_OPERATIONS: dict[WorkflowState, str] = {
    WorkflowState.SELF_SUBMITTED: "submit_self_evaluation",
    WorkflowState.MANAGER_SUBMITTED: "submit_manager_evaluation",
    WorkflowState.FINAL_DELIVERED: "generate_final_evaluation",
}

STATE_TIMESTAMPS: dict[WorkflowState, str] = {
    WorkflowState.SELF_SUBMITTED: "self_submitted_at",
    WorkflowState.MANAGER_SUBMITTED: "manager_submitted_at",
    WorkflowState.FINAL_DELIVERED: "final_delivered_at",
}

# Section weights (percent) for the overall rating of a scored form
SECTION_WEIGHTS: dict[Section, float] = {
    Section.EXPECTED_RESULTS: 40,
    Section.SKILLS_COMPETENCIES: 25,
    Section.KEY_RESPONSIBILITIES: 25,
    Section.LIVING_VALUES: 10,
}

# Which state an evaluation type is editable in
EDITABLE_STATES: dict[EvaluationType, WorkflowState | None] = {
    EvaluationType.SELF: WorkflowState.PENDING_SELF,
    EvaluationType.MANAGER: WorkflowState.PENDING_MANAGER,
    EvaluationType.FINAL: None,
}


def is_valid_transition(
    from_state: WorkflowState,
    to_state: WorkflowState,
    evaluation_type: EvaluationType | None = None,
) -> bool:
    if evaluation_type is not None and to_state not in TYPE_STATES[evaluation_type]:
        return False
    return to_state in TRANSITIONS[from_state]


def missing_sections(evaluation: Evaluation) -> list[str]:
    """Fields that block submission: the four section scores plus overall rating."""
    missing = [s.score_field for s in SECTIONS if getattr(evaluation, s.score_field) is None]
    if evaluation.overall_rating is None:
        missing.append("overall_rating")
    return missing


def section_weighted_rating(scores: dict[Section, float | None]) -> float | None:
    if any(scores.get(s) is None for s in SECTIONS):
        return None
    total_weight = sum(SECTION_WEIGHTS.values())
    return round2(sum(scores[s] * SECTION_WEIGHTS[s] for s in SECTIONS) / total_weight)


def _mean(a: float | None, b: float | None) -> float | None:
    if a is None or b is None:
        return None
    return round2((a + b) / 2)


def combined_comments(self_eval: Evaluation, manager_eval: Evaluation, overall: float | None) -> str:
    rating = f"{overall:.2f}" if overall is not None else "n/a"
    return (
        "=== SELF-EVALUATION ===\n"
        f"{self_eval.overall_comments or 'No comments'}\n\n"
        "=== MANAGER EVALUATION ===\n"
        f"{manager_eval.overall_comments or 'No comments'}\n\n"
        "=== FINAL ASSESSMENT ===\n"
        f"Combined rating: {rating}"
    )


@dataclass(frozen=True)
class CycleInitialization:
    period_id: int
    created_evaluation_ids: list[int]
    skipped_employee_ids: list[int]


@dataclass(frozen=True)
class ManagerSubmission:
    manager_evaluation: Evaluation
    final_evaluation: Evaluation


@dataclass
class WorkflowStatus:
    employee_id: int
    period_id: int
    current_phase: WorkflowPhase = WorkflowPhase.NOT_STARTED
    has_self: bool = False
    has_manager: bool = False
    has_final: bool = False
    self_state: str | None = None
    manager_state: str | None = None
    final_state: str | None = None
    self_submitted_at: datetime | None = None
    manager_submitted_at: datetime | None = None
    final_delivered_at: datetime | None = None
    evaluation_ids: dict[str, int] = field(default_factory=dict)


class WorkflowEngine:
    """
    Self -> manager -> final evaluation lifecycle.

    Every public operation runs in its own SAVEPOINT and returns a Result;
    a rejected operation leaves no writes behind.
    """

    def __init__(
        self,
        db: Session,
        aggregator: EvidenceAggregator | None = None,
        notifications: NotificationSink | None = None,
    ):
        self.db = db
        self.repository = SqlEvaluationRepository(db)
        self.periods = SqlPeriodProvider(db)
        self.employees = SqlEmployeeDirectory(db)
        self.aggregator = aggregator or EvidenceAggregator(
            db, repository=self.repository, periods=self.periods
        )
        self.notifications = notifications or LoggingNotificationSink()

    # -- internals ---------------------------------------------------------

    def _record_transition(
        self,
        evaluation: Evaluation,
        from_state: WorkflowState | None,
        to_state: WorkflowState,
        actor: User | None,
    ) -> WorkflowTransition:
        row = WorkflowTransition(
            evaluation_id=evaluation.id,
            from_state=from_state.value if from_state else None,
            to_state=to_state.value,
            actor_user_id=actor.id if actor else None,
            changed_at=utcnow(),
        )
        self.db.add(row)
        log_event(
            db=self.db,
            actor=actor,
            action=AuditAction.EVALUATION_TRANSITIONED,
            entity_id=evaluation.id,
            metadata={
                "from": row.from_state,
                "to": row.to_state,
                "evaluation_type": evaluation.evaluation_type,
            },
        )
        self.db.flush()
        logger.info(
            "workflow transition",
            extra={
                "evaluation_id": evaluation.id,
                "from_state": row.from_state,
                "to_state": row.to_state,
                "actor_user_id": row.actor_user_id,
            },
        )
        return row

    def _advance(self, evaluation_id: int, target: WorkflowState, actor: User | None) -> Evaluation:
        evaluation = self.repository.lock(evaluation_id)
        current = evaluation.state
        if not is_valid_transition(current, target, evaluation.type):
            raise InvalidTransition(current, target)

        fields: dict[str, Any] = {"workflow_state": target.value}
        stamp = STATE_TIMESTAMPS.get(target)
        if stamp:
            fields[stamp] = utcnow()
        self.repository.update(evaluation_id, fields)
        self._record_transition(evaluation, current, target, actor)
        return evaluation

    def _create(self, actor: User | None, **fields: Any) -> Evaluation:
        evaluation = self.repository.create(**fields)
        self._record_transition(evaluation, None, WorkflowState(fields["workflow_state"]), actor)
        log_event(
            db=self.db,
            actor=actor,
            action=AuditAction.EVALUATION_CREATED,
            entity_id=evaluation.id,
            metadata={
                "employee_id": evaluation.employee_id,
                "period_id": evaluation.period_id,
                "evaluation_type": evaluation.evaluation_type,
            },
        )
        return evaluation

    def _require_type(self, evaluation: Evaluation, expected: EvaluationType) -> None:
        if evaluation.type is not expected:
            raise InvalidArgument(
                f"Evaluation {evaluation.id} is not a {expected.value} evaluation",
                details={"evaluation_id": evaluation.id, "evaluation_type": evaluation.evaluation_type},
            )

    def _require_complete(self, evaluation: Evaluation) -> None:
        missing = missing_sections(evaluation)
        if missing:
            raise IncompleteEvaluation(missing)

    def _manager_user_id(self, employee_id: int | None) -> int | None:
        if not employee_id:
            return None
        manager = self.employees.get(employee_id)
        return manager.user_id

    # -- operations --------------------------------------------------------

    @returns_result
    def initialize_cycle(self, period_id: int, actor: User | None = None) -> CycleInitialization:
        """Create a pending_self evaluation for every active employee that lacks one."""
        period = self.periods.get(period_id)
        validate_period(period)
        if period.status == PeriodStatus.CLOSED.value:
            raise InvalidArgument("Evaluation period is closed", details={"period_id": period_id})
        if period.status == PeriodStatus.DRAFT.value:
            period.status = PeriodStatus.ACTIVE.value

        created: list[int] = []
        skipped: list[int] = []
        for employee in self.employees.active_employees():
            if self.repository.find(employee.id, period.id, EvaluationType.SELF):
                skipped.append(employee.id)
                continue

            evaluation = self._create(
                actor,
                employee_id=employee.id,
                evaluator_id=employee.user_id,
                manager_id=employee.manager_id,
                period_id=period.id,
                evaluation_type=EvaluationType.SELF.value,
                workflow_state=WorkflowState.PENDING_SELF.value,
            )
            self.aggregator.compute_and_store(evaluation.id, employee.id, period, actor=actor)
            created.append(evaluation.id)
            self.notifications.notify(
                NotificationEvent.EVALUATION_PERIOD_STARTED,
                recipient_user_id=employee.user_id,
                evaluation_id=evaluation.id,
                context={"period_id": period.id},
            )

        logger.info(
            "evaluation cycle initialized",
            extra={"period_id": period.id, "created": len(created), "skipped": len(skipped)},
        )
        return CycleInitialization(period_id=period.id, created_evaluation_ids=created, skipped_employee_ids=skipped)

    @returns_result
    def record_section_scores(
        self,
        evaluation_id: int,
        scores: dict[Section, float | None],
        actor: User | None = None,
        overall_rating: float | None = None,
        overall_comments: str | None = None,
    ) -> Evaluation:
        evaluation = self.repository.lock(evaluation_id)
        editable = EDITABLE_STATES[evaluation.type]
        if editable is None or evaluation.state is not editable:
            raise InvalidTransition(
                evaluation.state,
                evaluation.state,
                message=f"Scores can't be edited in state {evaluation.workflow_state}",
            )

        fields: dict[str, Any] = {}
        for section, value in scores.items():
            section = Section(section)
            if value is not None and not 0 <= value <= MAX_SCORE:
                raise InvalidArgument(
                    f"{section.score_field} must be between 0 and {MAX_SCORE:g}",
                    details={"field": section.score_field, "value": value},
                )
            fields[section.score_field] = value
        if overall_rating is not None and not 0 <= overall_rating <= MAX_SCORE:
            raise InvalidArgument(
                f"overall_rating must be between 0 and {MAX_SCORE:g}",
                details={"field": "overall_rating", "value": overall_rating},
            )

        merged = {s: fields.get(s.score_field, getattr(evaluation, s.score_field)) for s in SECTIONS}
        if overall_rating is not None:
            fields["overall_rating"] = overall_rating
        else:
            computed = section_weighted_rating(merged)
            if computed is not None:
                fields["overall_rating"] = computed
        if overall_comments is not None:
            fields["overall_comments"] = overall_comments

        self.repository.update(evaluation_id, fields)
        log_event(
            db=self.db,
            actor=actor,
            action=AuditAction.EVALUATION_SCORES_RECORDED,
            entity_id=evaluation_id,
            metadata={k: v for k, v in fields.items() if k != "overall_comments"},
        )
        return evaluation

    @returns_result
    def advance(self, evaluation_id: int, target: WorkflowState, actor: User | None = None) -> Evaluation:
        """
        Move an evaluation along an edge no other operation drives.

        Submissions and final delivery are refused here with InvalidTransition
        naming the operation to call instead, so their completeness checks,
        notifications and final generation always run.
        """
        target = WorkflowState(target)
        evaluation = self.repository.lock(evaluation_id)
        current = evaluation.state
        if (evaluation.type, current, target) not in ADVANCEABLE:
            owner = OWNING_OPERATIONS.get(target)
            raise InvalidTransition(
                current,
                target,
                message=(
                    f"{target.value} is reached through {owner}, not advance"
                    if owner and is_valid_transition(current, target, evaluation.type)
                    else None
                ),
            )
        return self._advance(evaluation_id, target, actor)

    @returns_result
    def submit_self_evaluation(self, evaluation_id: int, actor: User | None = None) -> Evaluation:
        evaluation = self.repository.lock(evaluation_id)
        self._require_type(evaluation, EvaluationType.SELF)
        if not is_valid_transition(evaluation.state, WorkflowState.SELF_SUBMITTED, evaluation.type):
            raise InvalidTransition(evaluation.state, WorkflowState.SELF_SUBMITTED)
        self._require_complete(evaluation)

        evaluation = self._advance(evaluation_id, WorkflowState.SELF_SUBMITTED, actor)

        employee = self.employees.get(evaluation.employee_id)
        self.notifications.notify(
            NotificationEvent.SELF_EVALUATION_SUBMITTED,
            recipient_user_id=employee.user_id,
            evaluation_id=evaluation.id,
        )
        if evaluation.manager_id:
            manager_user_id = self._manager_user_id(evaluation.manager_id)
            if manager_user_id:
                self.notifications.notify(
                    NotificationEvent.MANAGER_SELF_EVALUATION_READY,
                    recipient_user_id=manager_user_id,
                    evaluation_id=evaluation.id,
                )
        return evaluation

    @returns_result
    def create_manager_evaluation(self, self_evaluation_id: int, actor: User | None = None) -> Evaluation:
        self_eval = self.repository.get(self_evaluation_id)
        self._require_type(self_eval, EvaluationType.SELF)

        if self.repository.find(self_eval.employee_id, self_eval.period_id, EvaluationType.MANAGER):
            raise DuplicateEvaluation(
                "Manager evaluation already exists for this period",
                details={"employee_id": self_eval.employee_id, "period_id": self_eval.period_id},
            )

        employee = self.employees.get(self_eval.employee_id)
        manager_id = employee.manager_id
        if manager_id is None:
            actor_employee = self.employees.for_user(actor)
            manager_id = actor_employee.id if actor_employee else None

        evaluation = self._create(
            actor,
            employee_id=self_eval.employee_id,
            evaluator_id=actor.id if actor else None,
            manager_id=manager_id,
            period_id=self_eval.period_id,
            evaluation_type=EvaluationType.MANAGER.value,
            self_evaluation_id=self_eval.id,
            workflow_state=WorkflowState.PENDING_MANAGER.value,
        )
        self.aggregator.aggregate_evaluation(evaluation, actor=actor)

        self.notifications.notify(
            NotificationEvent.MANAGER_EVALUATION_DUE,
            recipient_user_id=actor.id if actor else self._manager_user_id(manager_id),
            evaluation_id=evaluation.id,
        )
        return evaluation

    @returns_result
    def submit_manager_evaluation(self, manager_evaluation_id: int, actor: User | None = None) -> ManagerSubmission:
        evaluation = self.repository.lock(manager_evaluation_id)
        self._require_type(evaluation, EvaluationType.MANAGER)
        if not is_valid_transition(evaluation.state, WorkflowState.MANAGER_SUBMITTED, evaluation.type):
            raise InvalidTransition(evaluation.state, WorkflowState.MANAGER_SUBMITTED)
        self._require_complete(evaluation)

        manager_eval = self._advance(manager_evaluation_id, WorkflowState.MANAGER_SUBMITTED, actor)
        final = self._generate_final(manager_eval.self_evaluation_id, manager_eval.id, actor)

        employee = self.employees.get(final.employee_id)
        self.notifications.notify(
            NotificationEvent.FINAL_EVALUATION_DELIVERED,
            recipient_user_id=employee.user_id,
            evaluation_id=final.id,
        )
        self.notifications.notify(
            NotificationEvent.HR_EVALUATION_COMPLETED,
            recipient_user_id=None,
            evaluation_id=final.id,
            context={"employee_id": final.employee_id, "period_id": final.period_id},
        )
        return ManagerSubmission(manager_evaluation=manager_eval, final_evaluation=final)

    @returns_result
    def generate_final_evaluation(
        self, self_evaluation_id: int, manager_evaluation_id: int, actor: User | None = None
    ) -> Evaluation:
        return self._generate_final(self_evaluation_id, manager_evaluation_id, actor)

    def _generate_final(self, self_evaluation_id: int, manager_evaluation_id: int, actor: User | None) -> Evaluation:
        self_eval = self.repository.get(self_evaluation_id)
        manager_eval = self.repository.get(manager_evaluation_id)
        self._require_type(self_eval, EvaluationType.SELF)
        self._require_type(manager_eval, EvaluationType.MANAGER)

        if manager_eval.self_evaluation_id != self_eval.id:
            raise InvalidArgument(
                "Manager evaluation is not paired with this self evaluation",
                details={"self_evaluation_id": self_eval.id, "manager_evaluation_id": manager_eval.id},
            )
        if manager_eval.state is not WorkflowState.MANAGER_SUBMITTED:
            raise InvalidTransition(
                manager_eval.state,
                WorkflowState.FINAL_DELIVERED,
                message="Final evaluation requires a submitted manager evaluation",
            )
        if self_eval.state is WorkflowState.PENDING_SELF:
            raise IncompleteEvaluation(
                [*missing_sections(self_eval), "self_submission"],
                message="Final evaluation requires a submitted self evaluation",
            )
        self._require_complete(self_eval)
        if self.repository.find(self_eval.employee_id, self_eval.period_id, EvaluationType.FINAL):
            raise DuplicateEvaluation(
                "Final evaluation already exists for this period",
                details={"employee_id": self_eval.employee_id, "period_id": self_eval.period_id},
            )

        overall = _mean(self_eval.overall_rating, manager_eval.overall_rating)
        fields: dict[str, Any] = {
            s.score_field: _mean(getattr(self_eval, s.score_field), getattr(manager_eval, s.score_field))
            for s in SECTIONS
        }

        final = self._create(
            actor,
            employee_id=self_eval.employee_id,
            evaluator_id=actor.id if actor else None,
            manager_id=manager_eval.manager_id,
            period_id=self_eval.period_id,
            evaluation_type=EvaluationType.FINAL.value,
            self_evaluation_id=self_eval.id,
            workflow_state=WorkflowState.FINAL_DELIVERED.value,
            final_delivered_at=utcnow(),
            overall_rating=overall,
            overall_comments=combined_comments(self_eval, manager_eval, overall),
            **fields,
        )
        self.aggregator.aggregate_evaluation(final, actor=actor)
        return final

    @returns_result
    def get_evaluation(self, evaluation_id: int, actor: User | None = None, refresh_if_stale: bool = True) -> Evaluation:
        evaluation = self.repository.get(evaluation_id)
        if refresh_if_stale:
            self.aggregator.refresh_if_stale(evaluation, actor=actor)
        return evaluation

    @returns_result
    def get_workflow_status(self, employee_id: int, period_id: int) -> WorkflowStatus:
        self.employees.get(employee_id)
        self.periods.get(period_id)

        status = WorkflowStatus(employee_id=employee_id, period_id=period_id)
        for e in self.repository.for_employee_period(employee_id, period_id):
            status.evaluation_ids[e.evaluation_type] = e.id
            if e.type is EvaluationType.SELF:
                status.has_self = True
                status.self_state = e.workflow_state
                status.self_submitted_at = e.self_submitted_at
            elif e.type is EvaluationType.MANAGER:
                status.has_manager = True
                status.manager_state = e.workflow_state
                status.manager_submitted_at = e.manager_submitted_at
            elif e.type is EvaluationType.FINAL:
                status.has_final = True
                status.final_state = e.workflow_state
                status.final_delivered_at = e.final_delivered_at

        if status.has_final:
            status.current_phase = WorkflowPhase.COMPLETED
        elif status.has_manager:
            status.current_phase = WorkflowPhase.MANAGER_REVIEW
        elif status.has_self:
            status.current_phase = WorkflowPhase.SELF_EVALUATION
        return status

    def list_transitions(self, evaluation_id: int) -> list[WorkflowTransition]:
        return (
            self.db.query(WorkflowTransition)
            .filter(WorkflowTransition.evaluation_id == evaluation_id)
            .order_by(WorkflowTransition.changed_at, WorkflowTransition.id)
            .all()
        )
