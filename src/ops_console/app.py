"""Application context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from ops_console.approvals.bridge import (
    ApprovalDelivery,
    ApprovalSignalBridge,
    LocalApprovalDelivery,
    RemoteApprovalDelivery,
)
from ops_console.approvals.models import ApproverPolicy
from ops_console.approvals.policy import load_approver_policy
from ops_console.audit.db import SqliteAuditSink, SqliteExecutionStore, SqliteStore
from ops_console.audit.sink import (
    AuditSink,
    CompositeAuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from ops_console.catalog.catalog import ActionCatalog, QueryTemplateCatalog
from ops_console.catalog.defaults import (
    DEFAULT_ACTIONS,
    DEFAULT_PERMISSIONS,
    DEFAULT_QUERY_TEMPLATES,
)
from ops_console.catalog.resolver import ActionResolver
from ops_console.config import Settings, load_settings
from ops_console.engine.durable import DurableWorkflowEngine, HttpDurableWorkflowClient
from ops_console.engine.phases import SimulatedExecutor
from ops_console.engine.store import ExecutionStore, InMemoryExecutionStore
from ops_console.engine.workflow_engine import ExecutionWorkflowEngine
from ops_console.logging_utils import configure_logging
from ops_console.policy.permissions import PermissionModel
from ops_console.service import OperationsConsole, WorkflowEngine
from ops_console.sql.runner import SqlTemplateRunner

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application-wide dependency container.

    Catalogs and the permission table are built once here and shared by
    reference with every component that needs them.
    """

    settings: Settings
    permissions: PermissionModel
    actions: ActionCatalog
    templates: QueryTemplateCatalog
    resolver: ActionResolver
    executions: ExecutionStore
    audit: AuditSink
    engine: WorkflowEngine
    runner: SqlTemplateRunner
    approver_policy: ApproverPolicy
    approvals: ApprovalSignalBridge
    console: OperationsConsole
    store: SqliteStore | None = None

    def close(self) -> None:
        if isinstance(self.engine, ExecutionWorkflowEngine):
            self.engine.close()
        if self.store is not None:
            self.store.close()


def build_app_context(settings: Settings) -> AppContext:
    permissions = PermissionModel(DEFAULT_PERMISSIONS)
    actions = ActionCatalog(DEFAULT_ACTIONS)
    templates = QueryTemplateCatalog(DEFAULT_QUERY_TEMPLATES)
    resolver = ActionResolver(actions, permissions)

    store: SqliteStore | None = None
    executions: ExecutionStore
    if settings.storage.backend == "sqlite":
        store = SqliteStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
        executions = SqliteExecutionStore(store)
        audit: AuditSink = CompositeAuditSink(SqliteAuditSink(store), LoggingAuditSink())
    else:
        executions = InMemoryExecutionStore()
        audit = CompositeAuditSink(InMemoryAuditSink(), LoggingAuditSink())

    engine: WorkflowEngine
    delivery: ApprovalDelivery
    if settings.runtime.engine == "durable":
        client = HttpDurableWorkflowClient(
            settings.runtime.base_url,
            namespace=settings.runtime.namespace,
            task_queue=settings.runtime.task_queue,
            timeout_seconds=settings.runtime.timeout_seconds,
        )
        durable_engine = DurableWorkflowEngine(client, executions)
        engine = durable_engine
        delivery = RemoteApprovalDelivery(durable_engine)
    else:
        local_engine = ExecutionWorkflowEngine(
            executions,
            phases=settings.execution.phases,
            executor=SimulatedExecutor(settings.execution.phase_delay_seconds),
        )
        engine = local_engine
        delivery = LocalApprovalDelivery(local_engine, permissions)

    runner = SqlTemplateRunner(templates, audit)
    approver_policy = load_approver_policy(settings.approvals.policy_path)
    approvals = ApprovalSignalBridge(approver_policy, delivery, audit)

    console = OperationsConsole(
        permissions=permissions,
        actions=actions,
        engine=engine,
        delivery=delivery,
        runner=runner,
        audit_sink=audit,
        resolver=resolver,
    )

    logger.info(
        "Operations console ready (engine=%s, storage=%s, actions=%d)",
        settings.runtime.engine,
        settings.storage.backend,
        len(actions),
    )

    return AppContext(
        settings=settings,
        permissions=permissions,
        actions=actions,
        templates=templates,
        resolver=resolver,
        executions=executions,
        audit=audit,
        engine=engine,
        runner=runner,
        approver_policy=approver_policy,
        approvals=approvals,
        console=console,
        store=store,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the application context.

    Returns a cached singleton instance of AppContext with all
    dependencies initialized.
    """
    configure_logging()
    return build_app_context(load_settings())
