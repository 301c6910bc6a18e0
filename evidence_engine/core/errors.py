from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for every rule violation the engine reports to callers."""

    code = "ENGINE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidArgument(EngineError):
    code = "INVALID_ARGUMENT"
    status_code = 400


class InvalidPeriod(EngineError):
    code = "INVALID_PERIOD"
    status_code = 400


class NotFound(EngineError):
    code = "NOT_FOUND"
    status_code = 404


class IncompleteEvaluation(EngineError):
    """Submission attempted before every section was scored."""

    code = "INCOMPLETE_EVALUATION"
    status_code = 422

    def __init__(self, missing: list[str], message: str | None = None):
        super().__init__(
            message or "Evaluation is incomplete. Please fill all required sections.",
            details={"missing": missing},
        )
        self.missing = missing


class InvalidTransition(EngineError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_state, to_state, message: str | None = None):
        from_value = getattr(from_state, "value", from_state)
        to_value = getattr(to_state, "value", to_state)
        super().__init__(
            message or f"Invalid workflow transition from {from_value} to {to_value}",
            details={"from": from_value, "to": to_value},
        )
        self.from_state = from_state
        self.to_state = to_state


class DuplicateEvaluation(EngineError):
    code = "DUPLICATE_EVALUATION"
    status_code = 409
