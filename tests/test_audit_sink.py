import logging
from unittest.mock import MagicMock

from ops_console.audit.models import ACTION_REQUESTED, QUERY_EXECUTED, AuditEvent
from ops_console.audit.sink import CompositeAuditSink, InMemoryAuditSink, LoggingAuditSink


def _event(event_type: str = ACTION_REQUESTED, **payload) -> AuditEvent:
    return AuditEvent(
        source="console",
        severity="info",
        message="Action requested: Restart Pods\nforged line",
        event_type=event_type,
        payload=payload,
        user_id="sre-1",
    )


def test_in_memory_sink_filters_by_type():
    sink = InMemoryAuditSink()
    sink.record(_event())
    sink.record(_event(QUERY_EXECUTED))

    assert [e.event_type for e in sink.events] == [ACTION_REQUESTED, QUERY_EXECUTED]
    assert len(sink.by_type(QUERY_EXECUTED)) == 1
    sink.clear()
    assert sink.events == []


def test_logging_sink_redacts_and_sanitizes(caplog):
    sink = LoggingAuditSink(logging.getLogger("ops_console.audit.test"))

    with caplog.at_level(logging.INFO, logger="ops_console.audit.test"):
        sink.record(_event(apiToken="abc123", region="us-east-1"))

    message = caplog.records[0].getMessage()
    assert "type=action_requested" in message
    assert "forged line" in message
    assert "\n" not in message
    assert "abc123" not in message
    assert '"region": "us-east-1"' in message


def test_composite_sink_fans_out_in_order():
    first, second = MagicMock(), MagicMock()
    event = _event()

    CompositeAuditSink(first, second).record(event)

    first.record.assert_called_once_with(event)
    second.record.assert_called_once_with(event)
