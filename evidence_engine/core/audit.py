import logging
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from evidence_engine.models.audit_event import AuditEvent
from evidence_engine.models.user import User

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    EVALUATION_CREATED = "EVALUATION_CREATED"
    EVALUATION_TRANSITIONED = "EVALUATION_TRANSITIONED"
    EVALUATION_SCORES_RECORDED = "EVALUATION_SCORES_RECORDED"
    EVIDENCE_AGGREGATED = "EVIDENCE_AGGREGATED"


def log_event(
    *,
    db: Session,
    actor: User | None,
    action: AuditAction,
    entity_id: int,
    entity_type: str = "evaluation",
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """Stage an audit row in the caller's transaction; nothing is flushed here."""
    event = AuditEvent(
        actor_user_id=actor.id if actor else None,
        action=AuditAction(action).value,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
    )
    db.add(event)
    logger.debug(
        "audit event staged",
        extra={"action": event.action, "entity_type": entity_type, "entity_id": entity_id},
    )
    return event


def recent_events(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    limit: int = 50,
) -> list[AuditEvent]:
    stmt = select(AuditEvent)
    if entity_type:
        stmt = stmt.where(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(AuditEvent.entity_id == entity_id)
    if action:
        stmt = stmt.where(AuditEvent.action == action)
    stmt = stmt.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit)
    return list(db.scalars(stmt))
