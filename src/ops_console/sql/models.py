"""Query execution result records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class QueryResultSet:
    columns: list[str]
    rows: list[dict[str, Any]]

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass
class QueryExecutionResult:
    id: str
    template_id: str
    template_name: str
    executed_by: str
    executed_by_username: str
    executed_at: str
    row_count: int
    execution_time_ms: int
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
