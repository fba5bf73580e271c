"""Data models for audit records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from ops_console.utils.time import utc_now_iso


@dataclass
class AuditEvent:
    source: str
    severity: str
    message: str
    event_type: str
    payload: dict[str, object] = field(default_factory=dict)
    user_id: str | None = None
    username: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


# event_type values
ACTION_REQUESTED = "action_requested"
APPROVAL_DECISION = "approval_decision"
QUERY_EXECUTED = "query_executed"
