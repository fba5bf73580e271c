from __future__ import annotations

import pytest

from ops_console import config


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    for key in config.ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_split_csv() -> None:
    assert config._split_csv(" a, b ,,c ") == ["a", "b", "c"]
    assert config._split_csv(None) == []


def test_resolve_path_relative_to_project_root() -> None:
    root = config._project_root()
    assert config._resolve_path("data/x.db") == str((root / "data" / "x.db").resolve())


def test_resolve_path_absolute(tmp_path) -> None:
    assert config._resolve_path(str(tmp_path / "x.db")) == str((tmp_path / "x.db").resolve())


def test_env_float_uses_default_for_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_FLOAT_VALUE", "")
    assert config._env_float("TEST_FLOAT_VALUE", 1.5) == 1.5


def test_env_float_invalid_value_returns_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_FLOAT_INVALID", "not_a_float")
    assert config._env_float("TEST_FLOAT_INVALID", 2.5) == 2.5


@pytest.mark.parametrize(("raw", "expected"), [("1", True), ("YES", True), ("off", False)])
def test_env_bool(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("TEST_BOOL_VALUE", raw)
    assert config._env_bool("TEST_BOOL_VALUE", not expected) is expected


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = config.load_settings()

    assert settings.storage.backend == "memory"
    assert settings.runtime.engine == "local"
    assert settings.execution.phases == config.DEFAULT_PHASES
    assert settings.execution.phase_delay_seconds == 0.5
    assert settings.approvals.policy_path is None
    assert settings.logging.file is None


def test_load_settings_is_cached(clean_env: pytest.MonkeyPatch) -> None:
    assert config.load_settings() is config.load_settings()


def test_env_overrides(clean_env: pytest.MonkeyPatch, tmp_path) -> None:
    clean_env.setenv("STORAGE_BACKEND", "sqlite")
    clean_env.setenv("SQLITE_PATH", str(tmp_path / "nested" / "ledger.db"))
    clean_env.setenv("SQLITE_WAL", "false")
    clean_env.setenv("PHASE_DELAY_SECONDS", "0")
    clean_env.setenv("EXECUTION_PHASES", "Plan, Apply ,")
    clean_env.setenv("WORKFLOW_ENGINE", "durable")
    clean_env.setenv("DURABLE_RUNTIME_URL", "http://runtime.internal:8233")
    clean_env.setenv("DURABLE_RUNTIME_TIMEOUT_SECONDS", "2.5")

    settings = config.load_settings()

    assert settings.storage.backend == "sqlite"
    assert settings.storage.sqlite_wal is False
    assert (tmp_path / "nested").is_dir()
    assert settings.execution.phases == ("Plan", "Apply")
    assert settings.execution.phase_delay_seconds == 0.0
    assert settings.runtime.engine == "durable"
    assert settings.runtime.base_url == "http://runtime.internal:8233"
    assert settings.runtime.timeout_seconds == 2.5


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("STORAGE_BACKEND", "postgres"),
        ("WORKFLOW_ENGINE", "cron"),
        ("PHASE_DELAY_SECONDS", "-1"),
    ],
)
def test_invalid_values_raise_runtime_error(
    clean_env: pytest.MonkeyPatch, key: str, value: str
) -> None:
    clean_env.setenv(key, value)

    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_blank_phase_labels_rejected() -> None:
    with pytest.raises(ValueError, match="At least one execution phase"):
        config.ExecutionSettings(phases=(" ", ""))
