"""Audited execution of parameterized query templates."""

from __future__ import annotations

import logging
import time
import uuid

from ops_console.audit.models import QUERY_EXECUTED, AuditEvent
from ops_console.audit.sink import AuditSink
from ops_console.catalog.catalog import QueryTemplateCatalog
from ops_console.domain.models import QueryTemplate, Role
from ops_console.domain.requests import QueryExecutionRequest
from ops_console.errors import NotFoundError, PermissionDeniedError
from ops_console.sql.executor import FixtureQueryExecutor, QueryExecutor
from ops_console.sql.models import QueryExecutionResult
from ops_console.utils.masking import mask_email_params, sanitize_log_value
from ops_console.utils.time import utc_now_iso
from ops_console.validation.params import validate_query_params

logger = logging.getLogger(__name__)


class SqlTemplateRunner:
    def __init__(
        self,
        templates: QueryTemplateCatalog,
        audit_sink: AuditSink,
        executor: QueryExecutor | None = None,
    ) -> None:
        self._templates = templates
        self._audit = audit_sink
        self._executor = executor or FixtureQueryExecutor()

    def execute_query(
        self,
        request: QueryExecutionRequest,
        caller_id: str,
        caller_name: str,
        role: Role | str,
    ) -> QueryExecutionResult:
        """Validate, authorize and run one template query.

        Every successful execution writes exactly one audit event; failures
        raise before anything is recorded.
        """
        template = self._templates.get(request.template_id)
        if template is None:
            raise NotFoundError(f"Query template not found: {request.template_id}")

        resolved_role = Role.coerce(role)
        if resolved_role is None or resolved_role not in template.required_roles:
            logger.warning(
                "Query %s denied for %s (role=%s)",
                template.id,
                sanitize_log_value(caller_id),
                sanitize_log_value(str(role)),
            )
            raise PermissionDeniedError("Insufficient permissions to execute this query")

        started = time.perf_counter()
        validate_query_params(template.params, request.params)
        result_set = self._executor.execute(template, request.params)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        result = QueryExecutionResult(
            id=str(uuid.uuid4()),
            template_id=template.id,
            template_name=template.name,
            executed_by=caller_id,
            executed_by_username=caller_name,
            executed_at=utc_now_iso(),
            row_count=result_set.row_count,
            execution_time_ms=elapsed_ms,
            columns=list(result_set.columns),
            rows=list(result_set.rows),
        )
        self._record_audit(result, template, request.params)
        logger.info(
            "Query %s executed by %s: %d rows in %dms",
            template.id,
            sanitize_log_value(caller_id),
            result.row_count,
            result.execution_time_ms,
        )
        return result

    def get_templates(self, role: Role | str) -> list[QueryTemplate]:
        return self._templates.for_role(role)

    def _record_audit(
        self,
        result: QueryExecutionResult,
        template: QueryTemplate,
        params: dict[str, object],
    ) -> None:
        self._audit.record(
            AuditEvent(
                source="sql_runner",
                severity="low",
                message=(
                    f"SQL Query Executed: {template.name} "
                    f"({result.row_count} rows, {result.execution_time_ms}ms)"
                ),
                event_type=QUERY_EXECUTED,
                payload={
                    "queryType": "sql_runner",
                    "templateId": template.id,
                    "templateName": template.name,
                    "params": mask_email_params(params),
                    "rowCount": result.row_count,
                    "executionTimeMs": result.execution_time_ms,
                },
                user_id=result.executed_by,
                username=result.executed_by_username,
            )
        )
