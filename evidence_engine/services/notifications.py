import logging
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    EVALUATION_PERIOD_STARTED = "evaluation_period_started"
    SELF_EVALUATION_SUBMITTED = "self_evaluation_submitted"
    MANAGER_SELF_EVALUATION_READY = "manager_self_evaluation_ready"
    MANAGER_EVALUATION_DUE = "manager_evaluation_due"
    FINAL_EVALUATION_DELIVERED = "final_evaluation_delivered"
    HR_EVALUATION_COMPLETED = "hr_evaluation_completed"


class NotificationSink(Protocol):
    def notify(
        self,
        event: NotificationEvent,
        *,
        recipient_user_id: int | None,
        evaluation_id: int,
        context: dict[str, Any] | None = None,
    ) -> None: ...


class LoggingNotificationSink:
    """Default sink: delivery is someone else's job, we just record intent."""

    def notify(
        self,
        event: NotificationEvent,
        *,
        recipient_user_id: int | None,
        evaluation_id: int,
        context: dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "notification",
            extra={
                "event": event.value,
                "recipient_user_id": recipient_user_id,
                "evaluation_id": evaluation_id,
                **(context or {}),
            },
        )
