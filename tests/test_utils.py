import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ops_console.domain.executions import WorkflowStatus
from ops_console.utils.masking import (
    mask_email,
    mask_email_params,
    redact_sensitive_fields,
    sanitize_log_value,
)
from ops_console.utils.serialization import dumps, json_default
from ops_console.utils.time import utc_now, utc_now_iso


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("alice@company.com", "al***@company.com"),
        ("bo@company.com", "bo***@company.com"),
        ("a@b.io", "a@b.io"),
        ("no-at-sign", "no-at-sign"),
    ],
)
def test_mask_email(value, expected):
    assert mask_email(value) == expected


def test_mask_email_params_only_touches_address_strings():
    params = {"email": "carol@company.com", "limit": 10, "userId": "U003"}
    assert mask_email_params(params) == {
        "email": "ca***@company.com",
        "limit": 10,
        "userId": "U003",
    }
    assert params["email"] == "carol@company.com"


def test_redact_sensitive_fields():
    payload = {
        "apiToken": "abc",
        "nested": {"Password": "p", "keep": [1, {"clientSecret": "s"}]},
        "region": "us-east-1",
    }
    assert redact_sensitive_fields(payload) == {
        "apiToken": "***",
        "nested": {"Password": "***", "keep": [1, {"clientSecret": "***"}]},
        "region": "us-east-1",
    }


def test_redact_depth_limit():
    deep = {"a": {"b": {"c": "value"}}}
    assert redact_sensitive_fields(deep, max_depth=2) == {"a": {"b": "***"}}


def test_sanitize_log_value():
    assert sanitize_log_value("user\nFAKE ENTRY\r") == "user_FAKE ENTRY_"
    assert sanitize_log_value("tab\tkept") == "tab\tkept"


def test_json_default_types():
    @dataclass
    class Point:
        x: int

    assert json_default(datetime(2026, 1, 1, tzinfo=timezone.utc)) == "2026-01-01T00:00:00+00:00"
    assert json_default(WorkflowStatus.RUNNING) == "running"
    assert json_default(Decimal("3")) == 3
    assert json_default(Decimal("1.5")) == 1.5
    assert json_default(frozenset({"b", "a"})) == ["a", "b"]
    assert json_default(Point(1)) == {"x": 1}
    assert json_default(b"bytes") == "bytes"
    assert json_default(object()).startswith("<object")


def test_dumps_handles_nested_values():
    encoded = dumps({"status": WorkflowStatus.COMPLETED, "roles": {"sre"}})
    assert json.loads(encoded) == {"status": "completed", "roles": ["sre"]}


def test_utc_now_is_timezone_aware():
    assert utc_now().tzinfo is timezone.utc
    parsed = datetime.fromisoformat(utc_now_iso())
    assert parsed.utcoffset().total_seconds() == 0
