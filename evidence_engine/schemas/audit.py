from datetime import datetime

from pydantic import BaseModel


class AuditEventOut(BaseModel):
    id: int
    actor_user_id: int | None
    action: str
    entity_type: str
    entity_id: int
    metadata: dict | None
    created_at: datetime

    @classmethod
    def from_event(cls, event) -> "AuditEventOut":
        # ORM attribute is event_metadata; "metadata" is reserved on declarative models
        return cls(
            id=event.id,
            actor_user_id=event.actor_user_id,
            action=event.action,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            metadata=event.event_metadata,
            created_at=event.created_at,
        )
