"""Masking helpers applied before values reach audit records or logs.

``mask_email_params`` keeps the first two characters of the local part of any
string containing ``@`` (``alice@company.com`` -> ``al***@company.com``).
``redact_sensitive_fields`` replaces values whose keys look like secrets.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

_MAX_REDACT_DEPTH = 20

_EMAIL_MASK_PATTERN = re.compile(r"(.{2}).*(@.*)")

# Control character pattern for log injection prevention.
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

SENSITIVE_KEY_MARKERS: list[str] = [
    "password",
    "secret",
    "token",
    "apikey",
    "credential",
    "authorization",
]


def mask_email(value: str) -> str:
    """Mask an address-like string; values without a match are returned as-is."""
    return _EMAIL_MASK_PATTERN.sub(r"\1***\2", value, count=1)


def mask_email_params(params: Mapping[str, object]) -> dict[str, object]:
    return {
        key: mask_email(value) if isinstance(value, str) and "@" in value else value
        for key, value in params.items()
    }


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "***",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists.

    Keys are matched by *substring* against ``SENSITIVE_KEY_MARKERS``
    (case-insensitive).  When ``max_depth`` is exceeded the entire
    sub-tree is replaced with *mask*.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, Mapping):
        redacted: dict[str, object] = {}
        for key, val in value.items():
            if any(marker in str(key).lower() for marker in SENSITIVE_KEY_MARKERS):
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, list):
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth,
            )
            for item in value
        ]
    return value


def sanitize_log_value(value: str) -> str:
    """Replace control characters (newlines, tabs, etc.) to prevent log injection."""
    return _CONTROL_CHAR_RE.sub("_", value)
