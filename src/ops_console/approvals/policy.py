"""Approver policy loading and identity resolution.

A missing, unreadable or malformed policy never aborts startup: it degrades
to an empty policy so every external user resolves to no roles.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from ops_console.approvals.models import (
    ApproverPolicy,
    ApprovalDecision,
    ApprovalSignalPayload,
    ApprovalSource,
    ResolvedApprover,
)
from ops_console.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

_JSON_SUFFIXES = frozenset({".json"})


def load_approver_policy(path: str | None) -> ApproverPolicy:
    if not path:
        return ApproverPolicy.empty()

    policy_path = Path(path)
    if not policy_path.exists():
        logger.warning("Approver policy file not found: %s", policy_path)
        return ApproverPolicy.empty()

    try:
        with policy_path.open("r", encoding="utf-8") as handle:
            if policy_path.suffix.lower() in _JSON_SUFFIXES:
                data = json.load(handle)
            else:
                data = yaml.safe_load(handle)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("Failed to read approver policy %s: %s", policy_path, exc)
        return ApproverPolicy.empty()

    return parse_approver_policy(data, source=str(policy_path))


def parse_approver_policy(data: object, *, source: str = "<memory>") -> ApproverPolicy:
    if not isinstance(data, dict) or not isinstance(data.get("users"), dict):
        logger.warning("Approver policy %s has an invalid shape; ignoring it", source)
        return ApproverPolicy.empty()
    try:
        policy = ApproverPolicy.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "Approver policy %s rejected (%d errors); ignoring it",
            source,
            exc.error_count(),
        )
        return ApproverPolicy.empty()
    logger.info("Loaded approver policy %s with %d users", source, len(policy.users))
    return policy


def resolve_approver(policy: ApproverPolicy | None, external_id: str) -> ResolvedApprover:
    entry = policy.users.get(external_id) if policy is not None else None
    if entry is None:
        return ResolvedApprover()
    return ResolvedApprover(
        roles=list(entry.roles),
        approver_id=entry.approver_id,
        approver_name=entry.approver_name,
    )


def build_signal_payload(
    decision: ApprovalDecision,
    external_user_id: str,
    *,
    policy: ApproverPolicy | None = None,
    external_user_name: str | None = None,
    external_username: str | None = None,
    reason: str | None = None,
    source: ApprovalSource = "slack",
    timestamp: str | None = None,
) -> ApprovalSignalPayload:
    resolved = resolve_approver(policy, external_user_id)
    return ApprovalSignalPayload(
        decision=decision,
        approver_id=resolved.approver_id or external_user_id,
        approver_name=(
            resolved.approver_name
            or external_user_name
            or external_username
            or external_user_id
        ),
        approver_roles=resolved.roles,
        reason=reason,
        timestamp=timestamp or utc_now_iso(),
        source=source,
    )
