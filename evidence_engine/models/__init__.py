from evidence_engine.models.audit_event import AuditEvent
from evidence_engine.models.employee import Employee
from evidence_engine.models.evaluation import Evaluation
from evidence_engine.models.evaluation_evidence_result import EvaluationEvidenceResult
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.evidence_entry import EvidenceEntry
from evidence_engine.models.user import User
from evidence_engine.models.workflow_transition import WorkflowTransition

__all__ = [ "AuditEvent", "Employee", "Evaluation",
           "EvaluationEvidenceResult", "EvaluationPeriod", "EvidenceEntry",
           "User", "WorkflowTransition" ]
