from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dimension(str, Enum):
    RESPONSIBILITIES = "responsibilities"
    KPIS = "kpis"
    COMPETENCIES = "competencies"
    VALUES = "values"

    @property
    def label(self) -> str:
        return _DIMENSION_LABELS[self]

    @property
    def section(self) -> "Section":
        return _DIMENSION_SECTIONS[self]


# Fixed order used for fetching, persisting and reporting
DIMENSIONS: tuple[Dimension, ...] = (
    Dimension.RESPONSIBILITIES,
    Dimension.KPIS,
    Dimension.COMPETENCIES,
    Dimension.VALUES,
)


class Section(str, Enum):
    """Scored sections of an evaluation form."""

    EXPECTED_RESULTS = "expected_results"
    SKILLS_COMPETENCIES = "skills_competencies"
    KEY_RESPONSIBILITIES = "key_responsibilities"
    LIVING_VALUES = "living_values"

    @property
    def score_field(self) -> str:
        return f"{self.value}_score"


SECTIONS: tuple[Section, ...] = (
    Section.EXPECTED_RESULTS,
    Section.SKILLS_COMPETENCIES,
    Section.KEY_RESPONSIBILITIES,
    Section.LIVING_VALUES,
)

_DIMENSION_LABELS = {
    Dimension.RESPONSIBILITIES: "Responsibilities",
    Dimension.KPIS: "KPIs",
    Dimension.COMPETENCIES: "Competencies",
    Dimension.VALUES: "Values",
}

_DIMENSION_SECTIONS = {
    Dimension.KPIS: Section.EXPECTED_RESULTS,
    Dimension.COMPETENCIES: Section.SKILLS_COMPETENCIES,
    Dimension.RESPONSIBILITIES: Section.KEY_RESPONSIBILITIES,
    Dimension.VALUES: Section.LIVING_VALUES,
}


class EvaluationType(str, Enum):
    SELF = "self"
    MANAGER = "manager"
    FINAL = "final"


class WorkflowState(str, Enum):
    PENDING_SELF = "pending_self"
    SELF_SUBMITTED = "self_submitted"
    PENDING_MANAGER = "pending_manager"
    MANAGER_SUBMITTED = "manager_submitted"
    FINAL_DELIVERED = "final_delivered"


class ConfidenceLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    GOOD = "good"
    HIGH = "high"


class WorkflowPhase(str, Enum):
    NOT_STARTED = "not_started"
    SELF_EVALUATION = "self_evaluation"
    MANAGER_REVIEW = "manager_review"
    COMPLETED = "completed"


class PeriodStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


def sql_in(enum_cls) -> str:
    """Render enum values for a CHECK ... IN (...) constraint."""
    return ",".join(f"'{m.value}'" for m in enum_cls)
