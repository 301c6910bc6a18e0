from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from evidence_engine.core.errors import EngineError
from evidence_engine.core.result import Err, Result
from evidence_engine.db.session import get_db
from evidence_engine.services.aggregator import EvidenceAggregator
from evidence_engine.services.workflow import WorkflowEngine


def get_aggregator(db: Session = Depends(get_db)) -> EvidenceAggregator:
    return EvidenceAggregator(db)


def get_workflow(db: Session = Depends(get_db)) -> WorkflowEngine:
    return WorkflowEngine(db)


def raise_http(error: EngineError):
    raise HTTPException(status_code=error.status_code, detail=error.to_dict())


def unwrap_or_http(result: Result):
    """Ok -> value, Err -> HTTPException carrying {code, message, details}."""
    if isinstance(result, Err):
        raise_http(result.error)
    return result.value
