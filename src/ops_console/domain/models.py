"""Domain objects for the action and query catalogs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def requires_approval(self) -> bool:
        return self in APPROVAL_RISK_LEVELS


APPROVAL_RISK_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


class Role(str, Enum):
    VIEWER = "viewer"
    DEV = "dev"
    SRE = "sre"
    ADMIN = "admin"

    @classmethod
    def coerce(cls, value: "Role | str") -> "Role | None":
        """Return the matching role, or None for strings that name no role."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class ParamType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    EMAIL = "email"


class ActionCategory(str, Enum):
    PROVISIONING = "provisioning"
    REMEDIATION = "remediation"
    DATA = "data"
    DEPLOYMENT = "deployment"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ContextType(str, Enum):
    INCIDENT = "incident"
    SUPPORT_TICKET = "support_ticket"
    DEPLOYMENT_FAILURE = "deployment_failure"
    SECURITY_ALERT = "security_alert"
    INFRASTRUCTURE = "infrastructure"
    GENERAL = "general"


class QueryTemplateType(str, Enum):
    READ = "read"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class ParamSpec:
    name: str
    type: ParamType
    label: str
    required: bool = True
    options: tuple[str, ...] | None = None
    placeholder: str | None = None


@dataclass(frozen=True)
class Action:
    id: str
    name: str
    description: str
    category: ActionCategory
    risk_level: RiskLevel
    required_params: tuple[ParamSpec, ...]
    required_roles: frozenset[Role]
    target_services: tuple[str, ...] = ()
    context_types: tuple[ContextType, ...] = ()
    workflow_id: str | None = None
    estimated_duration: str | None = None

    def __post_init__(self) -> None:
        if not self.required_roles:
            raise ValueError(f"Action {self.id} must declare at least one required role")

    @property
    def requires_approval(self) -> bool:
        return self.risk_level.requires_approval

    @property
    def is_global(self) -> bool:
        return not self.target_services


@dataclass(frozen=True)
class Permission:
    role: Role
    allowed_actions: frozenset[str] = field(default_factory=frozenset)
    allowed_risk_levels: frozenset[RiskLevel] = field(default_factory=frozenset)
    can_approve: bool = False


WILDCARD_ACTION = "*"


@dataclass(frozen=True)
class QueryTemplate:
    id: str
    name: str
    description: str
    template_sql: str
    type: QueryTemplateType
    params: tuple[ParamSpec, ...]
    required_roles: frozenset[Role]
