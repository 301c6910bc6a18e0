from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from evidence_engine.core.audit import recent_events
from evidence_engine.core.security import require_admin
from evidence_engine.db.session import get_db
from evidence_engine.schemas.audit import AuditEventOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEventOut])
def list_audit_events(
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    action: str | None = Query(default=None, description="e.g. EVALUATION_TRANSITIONED"),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    events = recent_events(db, entity_type=entity_type, entity_id=entity_id, action=action, limit=limit)
    return [AuditEventOut.from_event(e) for e in events]
