"""In-process execution engine: risk gate, phase progression and approvals."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import uuid
from collections.abc import Sequence

from ops_console.config import DEFAULT_PHASES
from ops_console.domain.executions import (
    CANCELLABLE_STATUSES,
    WorkflowExecution,
    WorkflowProgress,
    WorkflowStartResult,
    WorkflowStatus,
)
from ops_console.domain.models import Action
from ops_console.domain.requests import ExecuteActionRequest
from ops_console.engine.phases import (
    ActionExecutor,
    CancellationToken,
    RunCancelled,
    SimulatedExecutor,
)
from ops_console.engine.store import DuplicateRunError, ExecutionStore
from ops_console.utils.masking import sanitize_log_value
from ops_console.utils.time import utc_now_iso
from ops_console.validation.params import validate_params

logger = logging.getLogger(__name__)

_MAX_RUN_ID_ATTEMPTS = 5
_SHUTDOWN_TIMEOUT_SECONDS = 5.0

_RUNNING = frozenset({WorkflowStatus.RUNNING})
_PENDING = frozenset({WorkflowStatus.PENDING_APPROVAL})
_APPROVED = frozenset({WorkflowStatus.APPROVED})

INTERRUPTED_ERROR = "Progression interrupted"


def new_run_id(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def format_output_line(message: str) -> str:
    return f"[{utc_now_iso()}] {message}"


def add_with_fresh_run_id(
    store: ExecutionStore, execution: WorkflowExecution, prefix: str = "run"
) -> str:
    """Insert ``execution`` under a newly allocated run id, retrying on collision."""
    for _ in range(_MAX_RUN_ID_ATTEMPTS):
        execution.run_id = new_run_id(prefix)
        try:
            store.add(execution)
        except DuplicateRunError:
            logger.warning("Run id collision on %s, retrying", execution.run_id)
            continue
        return execution.run_id
    raise RuntimeError("Could not allocate a unique run id")


class ExecutionWorkflowEngine:
    """
    Drives action runs through the execution state machine.

    ``start_workflow``/``approve_workflow``/``reject_workflow``/``cancel_workflow``
    only touch the ledger and return immediately. Phase progression runs as
    one asyncio task per run, detached from the caller: on the caller's event
    loop when one is running, otherwise on a background loop owned by the
    engine (started lazily, stopped by ``close``).
    """

    def __init__(
        self,
        store: ExecutionStore,
        *,
        phases: Sequence[str] = DEFAULT_PHASES,
        executor: ActionExecutor | None = None,
    ) -> None:
        if not phases:
            raise ValueError("At least one execution phase is required")
        self._store = store
        self._phases = tuple(phases)
        self._executor = executor or SimulatedExecutor()
        self._tasks: dict[str, asyncio.Task[None] | concurrent.futures.Future[None]] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None

    @property
    def store(self) -> ExecutionStore:
        return self._store

    def start_workflow(
        self,
        action: Action,
        request: ExecuteActionRequest,
        caller_id: str,
        caller_name: str,
    ) -> WorkflowStartResult:
        validate_params(action.required_params, request.params)

        requires_approval = action.requires_approval
        status = WorkflowStatus.PENDING_APPROVAL if requires_approval else WorkflowStatus.RUNNING
        last_line = (
            f"Awaiting approval ({action.risk_level.value} risk action)"
            if requires_approval
            else "Executing..."
        )

        execution = WorkflowExecution(
            id=str(uuid.uuid4()),
            run_id="",
            action_id=action.id,
            action_name=action.name,
            status=status,
            params=dict(request.params),
            reasoning=request.reasoning,
            executed_by=caller_id,
            executed_by_username=caller_name,
            started_at=utc_now_iso(),
            requires_approval=requires_approval,
            output=[
                format_output_line(f"Workflow started: {action.name}"),
                format_output_line(f"Initiated by: {caller_name}"),
                format_output_line(last_line),
            ],
            context=request.context.to_context() if request.context else None,
        )
        run_id = add_with_fresh_run_id(self._store, execution)

        logger.info(
            "Workflow %s started for action %s by %s (status=%s)",
            run_id,
            action.id,
            sanitize_log_value(caller_id),
            status.value,
        )

        if not requires_approval:
            self._schedule(run_id)

        return WorkflowStartResult(
            run_id=run_id, status=status, requires_approval=requires_approval
        )

    def get_workflow_status(self, run_id: str) -> WorkflowProgress | None:
        execution = self._store.get(run_id)
        if execution is None:
            return None
        return WorkflowProgress.from_execution(execution)

    def get_execution(self, run_id: str) -> WorkflowExecution | None:
        return self._store.get(run_id)

    def approve_workflow(self, run_id: str, approver_id: str) -> bool:
        approved = self._store.transition(
            run_id,
            _PENDING,
            WorkflowStatus.APPROVED,
            approved_by=approver_id,
            approved_at=utc_now_iso(),
        )
        if not approved:
            return False
        self._append(run_id, f"Approved by: {approver_id}")

        if not self._store.transition(run_id, _APPROVED, WorkflowStatus.RUNNING):
            return True
        self._append(run_id, "Executing workflow...")
        logger.info("Workflow %s approved by %s", run_id, sanitize_log_value(approver_id))

        self._schedule(run_id)
        return True

    def reject_workflow(self, run_id: str, approver_id: str, reason: str | None = None) -> bool:
        rejected = self._store.transition(
            run_id, _PENDING, WorkflowStatus.REJECTED, completed_at=utc_now_iso()
        )
        if not rejected:
            return False
        self._append(run_id, f"Rejected by: {approver_id}")
        if reason:
            self._append(run_id, f"Reason: {reason}")
        logger.info("Workflow %s rejected by %s", run_id, sanitize_log_value(approver_id))
        return True

    def cancel_workflow(self, run_id: str) -> bool:
        cancelled = self._store.transition(
            run_id, CANCELLABLE_STATUSES, WorkflowStatus.CANCELLED, completed_at=utc_now_iso()
        )
        if not cancelled:
            return False
        self._append(run_id, "Workflow cancelled")

        with self._lock:
            token = self._tokens.get(run_id)
            task = self._tasks.get(run_id)
        if token is not None:
            token.cancel()
        if task is not None and not task.done():
            task.cancel()
        logger.info("Workflow %s cancelled", run_id)
        return True

    async def wait_for(self, run_id: str) -> WorkflowProgress | None:
        """Wait until the run's progression (if any) has finished."""
        with self._lock:
            task = self._tasks.get(run_id)
        if isinstance(task, concurrent.futures.Future):
            await asyncio.wait({asyncio.wrap_future(task)})
        elif task is not None:
            await asyncio.wait({task})
        return self.get_workflow_status(run_id)

    def join(self, run_id: str, timeout: float | None = None) -> WorkflowProgress | None:
        """Block until a run progressing on the background loop has finished.

        Runs scheduled on a caller's event loop must be awaited with
        ``wait_for`` instead.
        """
        with self._lock:
            task = self._tasks.get(run_id)
        if isinstance(task, concurrent.futures.Future):
            concurrent.futures.wait([task], timeout=timeout)
        return self.get_workflow_status(run_id)

    def pending_approvals(self) -> list[WorkflowExecution]:
        return self._store.list_pending_approvals()

    def executions_by_user(self, user_id: str) -> list[WorkflowExecution]:
        return self._store.list_by_user(user_id)

    def recent_executions(self, limit: int = 20) -> list[WorkflowExecution]:
        return self._store.recent(limit)

    def reset(self) -> None:
        with self._lock:
            tokens = list(self._tokens.values())
            tasks = list(self._tasks.values())
            self._tasks.clear()
            self._tokens.clear()
        for token in tokens:
            token.cancel()
        for task in tasks:
            if not task.done():
                task.cancel()
        self._store.clear()

    def close(self) -> None:
        """Stop the background loop; runs still progressing on it end ``failed``."""
        with self._lock:
            loop, thread = self._loop, self._loop_thread
            self._loop = self._loop_thread = None
        if loop is None:
            return

        shutdown = asyncio.run_coroutine_threadsafe(_cancel_pending_tasks(), loop)
        try:
            shutdown.result(timeout=_SHUTDOWN_TIMEOUT_SECONDS)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out waiting for workflow tasks to stop")
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=_SHUTDOWN_TIMEOUT_SECONDS)
        loop.close()

    def _append(self, run_id: str, message: str) -> None:
        self._store.append_output(run_id, format_output_line(message))

    def _schedule(self, run_id: str) -> None:
        token = CancellationToken()
        coro = self._progress(run_id, token)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        with self._lock:
            self._tokens[run_id] = token
            if loop is not None:
                task: asyncio.Task[None] | concurrent.futures.Future[None] = loop.create_task(
                    coro, name=f"workflow-{run_id}"
                )
            else:
                task = asyncio.run_coroutine_threadsafe(coro, self._background_loop())
            self._tasks[run_id] = task
        task.add_done_callback(lambda _task: self._forget(run_id, _task))

    def _background_loop(self) -> asyncio.AbstractEventLoop:
        # Called with self._lock held.
        if self._loop is None:
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=loop.run_forever, name="workflow-engine-loop", daemon=True
            )
            thread.start()
            self._loop, self._loop_thread = loop, thread
            logger.debug("Started background workflow loop")
        return self._loop

    def _forget(self, run_id: str, task: object) -> None:
        with self._lock:
            if self._tasks.get(run_id) is task:
                del self._tasks[run_id]
                self._tokens.pop(run_id, None)

    async def _progress(self, run_id: str, token: CancellationToken) -> None:
        try:
            for phase in self._phases:
                token.raise_if_cancelled()
                execution = self._store.get(run_id)
                if execution is None or execution.status is not WorkflowStatus.RUNNING:
                    return
                self._append(run_id, phase)
                await self._executor.run_phase(execution, phase)

            token.raise_if_cancelled()
            completed = self._store.transition(
                run_id, _RUNNING, WorkflowStatus.COMPLETED, completed_at=utc_now_iso()
            )
            if completed:
                self._append(run_id, "Workflow completed successfully")
                self._append(run_id, f'Action "{execution.action_name}" finished')
                logger.info("Workflow %s completed", run_id)
        except RunCancelled:
            logger.debug("Progression for %s stopped after cancellation", run_id)
        except asyncio.CancelledError:
            if not token.cancelled:
                # Task cancelled from outside cancel_workflow, e.g. loop shutdown.
                logger.warning("Progression for %s interrupted", run_id)
                self._fail(run_id, INTERRUPTED_ERROR)
            raise
        except Exception as exc:
            logger.exception("Workflow %s failed", run_id)
            self._fail(run_id, str(exc))

    def _fail(self, run_id: str, error: str) -> None:
        failed = self._store.transition(
            run_id,
            _RUNNING,
            WorkflowStatus.FAILED,
            completed_at=utc_now_iso(),
            error=error,
        )
        if failed:
            self._append(run_id, f"Workflow failed: {error}")


async def _cancel_pending_tasks() -> None:
    current = asyncio.current_task()
    tasks = [task for task in asyncio.all_tasks() if task is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
