"""Audit sinks receiving console audit events."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from ops_console.audit.models import AuditEvent
from ops_console.utils.masking import redact_sensitive_fields, sanitize_log_value
from ops_console.utils.serialization import dumps

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class InMemoryAuditSink:
    """Keeps events in arrival order; used by tests and the memory backend."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def record(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    def by_type(self, event_type: str) -> list[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingAuditSink:
    """Writes each event as a single structured log line."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logging.getLogger("ops_console.audit")

    def record(self, event: AuditEvent) -> None:
        self._logger.info(
            "AUDIT type=%s source=%s severity=%s user=%s message=%s payload=%s",
            event.event_type,
            event.source,
            event.severity,
            sanitize_log_value(event.user_id or "-"),
            sanitize_log_value(event.message),
            dumps(redact_sensitive_fields(event.payload)),
        )


class CompositeAuditSink:
    """Fans an event out to several sinks in order."""

    def __init__(self, *sinks: AuditSink) -> None:
        self._sinks = sinks

    def record(self, event: AuditEvent) -> None:
        for sink in self._sinks:
            sink.record(event)
