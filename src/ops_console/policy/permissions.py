"""Role permission model evaluation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from ops_console.domain.models import WILDCARD_ACTION, Action, Permission, Role

logger = logging.getLogger(__name__)


class PermissionModel:
    """
    Immutable role -> permission table.

    The table must cover every ``Role``; an unknown role is therefore only
    reachable through an untyped string, which is always denied.
    """

    def __init__(self, permissions: Iterable[Permission]) -> None:
        table: dict[Role, Permission] = {}
        for permission in permissions:
            if permission.role in table:
                raise ValueError(f"Duplicate permission entry for role: {permission.role.value}")
            table[permission.role] = permission

        missing = [role.value for role in Role if role not in table]
        if missing:
            raise ValueError(f"Permission table is missing roles: {', '.join(missing)}")

        self._table = MappingProxyType(table)
        logger.info("PermissionModel initialized with %d roles", len(table))

    def get_permissions(self, role: Role | str) -> Permission | None:
        resolved = Role.coerce(role)
        if resolved is None:
            return None
        return self._table[resolved]

    def can_execute_action(self, role: Role | str, action: Action) -> bool:
        resolved = Role.coerce(role)
        if resolved is None:
            return False
        permission = self._table[resolved]

        if resolved not in action.required_roles:
            return False
        if action.risk_level not in permission.allowed_risk_levels:
            return False
        return (
            WILDCARD_ACTION in permission.allowed_actions
            or action.id in permission.allowed_actions
        )

    def can_approve(self, role: Role | str) -> bool:
        permission = self.get_permissions(role)
        return permission.can_approve if permission is not None else False

    def approver_roles(self) -> frozenset[Role]:
        return frozenset(role for role, perm in self._table.items() if perm.can_approve)
