from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from evidence_engine.api.audit import router as audit_router
from evidence_engine.api.employees import router as employees_router
from evidence_engine.api.evaluations import router as evaluations_router
from evidence_engine.api.health import router as health_router
from evidence_engine.api.periods import router as periods_router
from evidence_engine.core.config import settings
from evidence_engine.core.logging import setup_logging

setup_logging()

app = FastAPI(title="Evidence Evaluation Engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(periods_router)
app.include_router(evaluations_router)
app.include_router(employees_router)
app.include_router(audit_router)
