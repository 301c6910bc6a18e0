import logging
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from evidence_engine.core.config import settings


class EngineJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Install a single stream handler on the root logger. Safe to call more than once."""
    root = logging.getLogger()
    level = level or settings.LOG_LEVEL
    json_output = settings.LOG_JSON if json_output is None else json_output

    for handler in list(root.handlers):
        if getattr(handler, "_evidence_engine", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._evidence_engine = True  # type: ignore[attr-defined]
    if json_output:
        handler.setFormatter(EngineJsonFormatter("%(timestamp) %(level) %(name) %(message)"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(level.upper())

    # Suppress verbose logs from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
