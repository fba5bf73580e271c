"""Approval signal and approver policy models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ops_console.utils.time import utc_now_iso

ApprovalDecision = Literal["approved", "rejected"]
ApprovalSource = Literal["console", "slack", "api"]

APPROVER_POLICY_VERSION = "1.0.0"


class ApprovalSignalPayload(BaseModel):
    """Decision delivered to a run waiting at the approval gate."""

    decision: ApprovalDecision
    approver_id: str = Field(min_length=1)
    approver_name: str | None = None
    approver_roles: list[str] = Field(default_factory=list)
    reason: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)
    source: ApprovalSource = "console"

    def to_wire(self) -> dict[str, Any]:
        return {
            "decision": self.decision,
            "approverId": self.approver_id,
            "approverName": self.approver_name,
            "approverRoles": list(self.approver_roles),
            "reason": self.reason,
            "timestamp": self.timestamp,
            "source": self.source,
        }


class ApproverEntry(BaseModel):
    roles: list[str] = Field(default_factory=list)
    approver_id: str | None = Field(
        default=None, validation_alias=AliasChoices("approver_id", "approverId")
    )
    approver_name: str | None = Field(
        default=None, validation_alias=AliasChoices("approver_name", "approverName")
    )

    @field_validator("roles", mode="before")
    @classmethod
    def _keep_string_roles(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [role for role in v if isinstance(role, str)]

    @field_validator("approver_id", "approver_name", mode="before")
    @classmethod
    def _drop_non_strings(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class ApproverPolicy(BaseModel):
    """Versioned mapping of external user ids to approver identities."""

    version: Literal["1.0.0"]
    users: dict[str, ApproverEntry] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ApproverPolicy":
        return cls(version=APPROVER_POLICY_VERSION)


class ResolvedApprover(BaseModel):
    roles: list[str] = Field(default_factory=list)
    approver_id: str | None = None
    approver_name: str | None = None
