"""Configuration management for the operations console core."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

DEFAULT_PHASES: tuple[str, ...] = (
    "Validating inputs...",
    "Connecting to target system...",
    "Executing action...",
    "Verifying result...",
    "Cleaning up...",
)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class StorageSettings(BaseModel):
    backend: Literal["memory", "sqlite"] = Field(default="memory")
    sqlite_path: str = Field(default="./data/ops_console.sqlite")
    sqlite_wal: bool = Field(default=True)


class ExecutionSettings(BaseModel):
    phase_delay_seconds: float = Field(default=0.5, ge=0.0, le=60.0)
    phases: tuple[str, ...] = Field(default=DEFAULT_PHASES)

    @field_validator("phases")
    @classmethod
    def _validate_phases(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(label.strip() for label in value if label.strip())
        if not cleaned:
            raise ValueError("At least one execution phase must be configured")
        return cleaned


class ApprovalSettings(BaseModel):
    policy_path: str | None = Field(
        default=None,
        description="Path to the versioned approver identity policy (YAML or JSON)",
    )


class DurableRuntimeSettings(BaseModel):
    """Remote durable workflow runtime settings.

    Only consulted when ``engine`` is ``durable``; the local engine runs
    phases in-process.
    """

    engine: Literal["local", "durable"] = Field(default="local")
    base_url: str = Field(default="http://localhost:8233")
    namespace: str = Field(default="default")
    task_queue: str = Field(default="ops-console")
    timeout_seconds: float = Field(default=10.0, ge=0.1, le=300.0)


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    approvals: ApprovalSettings = Field(default_factory=ApprovalSettings)
    runtime: DurableRuntimeSettings = Field(default_factory=DurableRuntimeSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "storage_backend": "STORAGE_BACKEND",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "phase_delay": "PHASE_DELAY_SECONDS",
    "phases": "EXECUTION_PHASES",
    "approver_policy_path": "APPROVER_POLICY_PATH",
    "workflow_engine": "WORKFLOW_ENGINE",
    "runtime_url": "DURABLE_RUNTIME_URL",
    "runtime_namespace": "DURABLE_RUNTIME_NAMESPACE",
    "runtime_task_queue": "DURABLE_RUNTIME_TASK_QUEUE",
    "runtime_timeout": "DURABLE_RUNTIME_TIMEOUT_SECONDS",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    policy_path_env = os.getenv(ENV_KEYS["approver_policy_path"])
    phases = _split_csv(os.getenv(ENV_KEYS["phases"]))

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "storage": {
            "backend": os.getenv(ENV_KEYS["storage_backend"], StorageSettings().backend),
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
        },
        "execution": {
            "phase_delay_seconds": _env_float(
                ENV_KEYS["phase_delay"],
                ExecutionSettings().phase_delay_seconds,
            ),
            "phases": tuple(phases) if phases else DEFAULT_PHASES,
        },
        "approvals": {
            "policy_path": _resolve_path(policy_path_env) if policy_path_env else None,
        },
        "runtime": {
            "engine": os.getenv(ENV_KEYS["workflow_engine"], DurableRuntimeSettings().engine),
            "base_url": os.getenv(ENV_KEYS["runtime_url"], DurableRuntimeSettings().base_url),
            "namespace": os.getenv(
                ENV_KEYS["runtime_namespace"], DurableRuntimeSettings().namespace
            ),
            "task_queue": os.getenv(
                ENV_KEYS["runtime_task_queue"], DurableRuntimeSettings().task_queue
            ),
            "timeout_seconds": _env_float(
                ENV_KEYS["runtime_timeout"],
                DurableRuntimeSettings().timeout_seconds,
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.storage.backend == "sqlite":
        Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
