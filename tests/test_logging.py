import json
import logging

from evidence_engine.core.logging import EngineJsonFormatter, setup_logging
from evidence_engine.services.notifications import LoggingNotificationSink, NotificationEvent


def test_json_formatter_adds_timestamp_and_level():
    formatter = EngineJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    record = logging.LogRecord(
        name="evidence_engine.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="evidence aggregated",
        args=(),
        exc_info=None,
    )
    record.evaluation_id = 42

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "evidence aggregated"
    assert payload["level"] == "WARNING"
    assert payload["name"] == "evidence_engine.test"
    assert payload["evaluation_id"] == 42
    assert payload["timestamp"]


def test_setup_logging_installs_one_handler():
    setup_logging(level="DEBUG", json_output=True)
    setup_logging(level="INFO", json_output=False)

    root = logging.getLogger()
    ours = [h for h in root.handlers if getattr(h, "_evidence_engine", False)]
    assert len(ours) == 1
    assert not isinstance(ours[0].formatter, EngineJsonFormatter)
    assert root.level == logging.INFO


def test_logging_sink_records_intent(caplog):
    sink = LoggingNotificationSink()

    with caplog.at_level(logging.INFO, logger="evidence_engine.services.notifications"):
        sink.notify(
            NotificationEvent.FINAL_EVALUATION_DELIVERED,
            recipient_user_id=7,
            evaluation_id=3,
            context={"period_id": 1},
        )

    record = caplog.records[-1]
    assert record.getMessage() == "notification"
    assert record.event == "final_evaluation_delivered"
    assert record.recipient_user_id == 7
    assert record.period_id == 1
