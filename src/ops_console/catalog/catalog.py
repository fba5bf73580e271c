"""Read-only action and query template catalogs."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from ops_console.domain.models import Action, ActionCategory, QueryTemplate, Role

if TYPE_CHECKING:
    from ops_console.policy.permissions import PermissionModel


@dataclass(frozen=True)
class CategorySummary:
    id: ActionCategory
    name: str
    count: int


class ActionCatalog:
    """Immutable lookup of catalog actions by id and category."""

    def __init__(self, actions: Iterable[Action]) -> None:
        by_id: dict[str, Action] = {}
        for action in actions:
            if action.id in by_id:
                raise ValueError(f"Duplicate action id in catalog: {action.id}")
            by_id[action.id] = action
        self._actions = MappingProxyType(by_id)

    def __len__(self) -> int:
        return len(self._actions)

    def all(self) -> list[Action]:
        return list(self._actions.values())

    def get(self, action_id: str) -> Action | None:
        return self._actions.get(action_id)

    def by_category(self, category: ActionCategory | str) -> list[Action]:
        return [action for action in self._actions.values() if action.category == category]

    def categories(self, actions: Iterable[Action] | None = None) -> list[CategorySummary]:
        """Summarize categories in catalog order, skipping empty ones."""
        source = list(actions) if actions is not None else self.all()
        counts: dict[ActionCategory, int] = {}
        for action in source:
            counts[action.category] = counts.get(action.category, 0) + 1
        return [
            CategorySummary(id=category, name=category.display_name, count=count)
            for category, count in counts.items()
        ]

    def visible_to(self, role: Role | str, permissions: "PermissionModel") -> list[Action]:
        return [
            action
            for action in self._actions.values()
            if permissions.can_execute_action(role, action)
        ]


class QueryTemplateCatalog:
    """Immutable lookup of parameterized query templates."""

    def __init__(self, templates: Iterable[QueryTemplate]) -> None:
        by_id: dict[str, QueryTemplate] = {}
        for template in templates:
            if template.id in by_id:
                raise ValueError(f"Duplicate query template id in catalog: {template.id}")
            by_id[template.id] = template
        self._templates = MappingProxyType(by_id)

    def all(self) -> list[QueryTemplate]:
        return list(self._templates.values())

    def get(self, template_id: str) -> QueryTemplate | None:
        return self._templates.get(template_id)

    def for_role(self, role: Role | str) -> list[QueryTemplate]:
        resolved = Role.coerce(role)
        if resolved is None:
            return []
        return [t for t in self._templates.values() if resolved in t.required_roles]
