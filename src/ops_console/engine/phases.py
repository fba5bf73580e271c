"""Phase execution primitives for run progression."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Protocol

from ops_console.domain.executions import WorkflowExecution

logger = logging.getLogger(__name__)


class RunCancelled(Exception):
    """Raised inside progression once its run has been cancelled."""


class CancellationToken:
    """Flag shared between a run's progression task and ``cancel_workflow``."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise RunCancelled()


class ActionExecutor(Protocol):
    async def run_phase(self, execution: WorkflowExecution, phase: str) -> None: ...


class SimulatedExecutor:
    """Executor with no side effects: every phase just waits ``delay_seconds``."""

    def __init__(self, delay_seconds: float = 0.5) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self._delay = delay_seconds

    async def run_phase(self, execution: WorkflowExecution, phase: str) -> None:
        logger.debug("Simulating phase %r for run %s", phase, execution.run_id)
        await asyncio.sleep(self._delay)
