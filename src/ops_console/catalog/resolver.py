"""Context-aware ranking of catalog actions for an operational signal."""

from __future__ import annotations

from collections.abc import Iterable

from ops_console.catalog.catalog import ActionCatalog
from ops_console.domain.models import Action, ContextType, Role
from ops_console.policy.permissions import PermissionModel

_SERVICE_MATCH_SCORE = 10
_CONTEXT_MATCH_SCORE = 20
_GLOBAL_ACTION_PENALTY = 5


class ActionResolver:
    def __init__(self, catalog: ActionCatalog, permissions: PermissionModel) -> None:
        self._catalog = catalog
        self._permissions = permissions

    def resolve_for_signal(
        self,
        service_tags: Iterable[str],
        context_type: ContextType | None,
        role: Role | str,
    ) -> list[Action]:
        """Return executable actions relevant to the signal, best match first.

        Global actions (no target services) always qualify. Targeted actions
        need a shared service tag and, when they list context types, a match
        on the signal's context type.
        """
        tags = frozenset(service_tags)
        matching: list[Action] = []
        for action in self._catalog.visible_to(role, self._permissions):
            if action.is_global:
                matching.append(action)
                continue
            if not tags.intersection(action.target_services):
                continue
            if action.context_types and context_type not in action.context_types:
                continue
            matching.append(action)

        return sorted(
            matching,
            key=lambda action: self.relevance_score(action, tags, context_type),
            reverse=True,
        )

    def for_context_type(self, context_type: ContextType, role: Role | str) -> list[Action]:
        return [
            action
            for action in self._catalog.visible_to(role, self._permissions)
            if not action.context_types or context_type in action.context_types
        ]

    @staticmethod
    def relevance_score(
        action: Action,
        service_tags: frozenset[str],
        context_type: ContextType | None,
    ) -> int:
        score = _SERVICE_MATCH_SCORE * len(service_tags.intersection(action.target_services))
        if context_type is not None and context_type in action.context_types:
            score += _CONTEXT_MATCH_SCORE
        if action.is_global:
            score -= _GLOBAL_ACTION_PENALTY
        return score
