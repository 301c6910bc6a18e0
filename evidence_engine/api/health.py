from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from evidence_engine.core.config import settings
from evidence_engine.core.enums import PeriodStatus
from evidence_engine.db.session import get_db
from evidence_engine.models.evaluation_period import EvaluationPeriod

router = APIRouter(tags=["health"])


@router.get("/")
def root():
    return {
        "name": "Evidence Evaluation Engine",
        "environment": settings.APP_ENV,
        "docs": "/docs",
        "health": "/health",
        "evaluations": "/evaluations",
    }


@router.get("/health")
def health(db: Session = Depends(get_db)):
    active_periods = db.scalar(
        select(func.count(EvaluationPeriod.id)).where(EvaluationPeriod.status == PeriodStatus.ACTIVE.value)
    )
    return {"status": "ok", "database": "ok", "active_periods": active_periods or 0}
