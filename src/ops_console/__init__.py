"""Action execution and approval engine for the operations console.

Catalog lookup, role permissions, workflow runs with an approval gate,
parameterized read-only queries, and audit recording.
"""

from ops_console.app import AppContext, build_app_context, get_app_context
from ops_console.errors import (
    DurableRuntimeError,
    NotFoundError,
    OpsConsoleError,
    PermissionDeniedError,
    ValidationError,
)
from ops_console.service import OperationsConsole

__version__ = "0.1.0"

__all__ = [
    "AppContext",
    "DurableRuntimeError",
    "NotFoundError",
    "OperationsConsole",
    "OpsConsoleError",
    "PermissionDeniedError",
    "ValidationError",
    "build_app_context",
    "get_app_context",
]
