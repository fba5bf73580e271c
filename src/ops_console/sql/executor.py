"""Named-query executors for query templates."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Protocol

from ops_console.domain.models import QueryTemplate
from ops_console.sql.models import QueryResultSet

logger = logging.getLogger(__name__)

_USER_COLUMNS = ["id", "username", "email", "created_at", "last_login"]
_BLOCKER_COLUMNS = ["id", "message", "severity", "username", "timestamp", "age_hours"]
_DEFAULT_BLOCKER_LIMIT = 50

SAMPLE_USERS: tuple[dict[str, Any], ...] = (
    {
        "id": "U001",
        "username": "alice",
        "email": "alice@company.com",
        "created_at": "2024-01-15",
        "last_login": "2026-01-21",
    },
    {
        "id": "U002",
        "username": "bob",
        "email": "bob@company.com",
        "created_at": "2024-02-20",
        "last_login": "2026-01-20",
    },
    {
        "id": "U003",
        "username": "charlie",
        "email": "charlie@company.com",
        "created_at": "2024-03-10",
        "last_login": "2026-01-19",
    },
    {
        "id": "U004",
        "username": "diana",
        "email": "diana@company.com",
        "created_at": "2024-04-05",
        "last_login": "2026-01-21",
    },
)

SAMPLE_EVENT_COUNTS: tuple[dict[str, Any], ...] = (
    {"source": "slack", "count": 42},
    {"source": "jira", "count": 38},
    {"source": "gitlab", "count": 67},
    {"source": "bitbucket", "count": 29},
    {"source": "pagerduty", "count": 15},
)

SAMPLE_BLOCKERS: tuple[dict[str, Any], ...] = (
    {
        "id": "b1",
        "message": "Database connection pool exhausted",
        "severity": "critical",
        "username": "bob",
        "timestamp": "2026-01-21T10:00:00Z",
        "age_hours": 8.5,
    },
    {
        "id": "b2",
        "message": "Payment gateway returning 503 errors",
        "severity": "high",
        "username": "charlie",
        "timestamp": "2026-01-20T14:00:00Z",
        "age_hours": 28.5,
    },
)


class QueryExecutor(Protocol):
    def execute(self, template: QueryTemplate, params: Mapping[str, Any]) -> QueryResultSet: ...


_Handler = Callable[[Mapping[str, Any]], QueryResultSet]


class FixtureQueryExecutor:
    """Serves fixed sample data keyed by template id; touches no database."""

    def __init__(self) -> None:
        self._handlers: dict[str, _Handler] = {
            "query-user-by-email": self._user_by_email,
            "query-user-by-id": self._user_by_id,
            "count-events-by-source": self._event_counts,
            "find-active-blockers": self._active_blockers,
        }

    def execute(self, template: QueryTemplate, params: Mapping[str, Any]) -> QueryResultSet:
        handler = self._handlers.get(template.id)
        if handler is None:
            logger.debug("No fixture data for template %s", template.id)
            return QueryResultSet(columns=[], rows=[])
        return handler(params)

    @staticmethod
    def _user_by_email(params: Mapping[str, Any]) -> QueryResultSet:
        rows = [dict(user) for user in SAMPLE_USERS if user["email"] == params.get("email")]
        return QueryResultSet(columns=list(_USER_COLUMNS), rows=rows[:1])

    @staticmethod
    def _user_by_id(params: Mapping[str, Any]) -> QueryResultSet:
        rows = [dict(user) for user in SAMPLE_USERS if user["id"] == params.get("userId")]
        return QueryResultSet(columns=list(_USER_COLUMNS), rows=rows[:1])

    @staticmethod
    def _event_counts(params: Mapping[str, Any]) -> QueryResultSet:
        return QueryResultSet(
            columns=["source", "count"], rows=[dict(row) for row in SAMPLE_EVENT_COUNTS]
        )

    @staticmethod
    def _active_blockers(params: Mapping[str, Any]) -> QueryResultSet:
        limit = params.get("limit")
        count = int(float(limit)) if limit else _DEFAULT_BLOCKER_LIMIT
        return QueryResultSet(
            columns=list(_BLOCKER_COLUMNS),
            rows=[dict(row) for row in SAMPLE_BLOCKERS[: max(count, 0)]],
        )
