import pytest

from ops_console.catalog.catalog import ActionCatalog, QueryTemplateCatalog
from ops_console.catalog.defaults import DEFAULT_ACTIONS, DEFAULT_QUERY_TEMPLATES
from ops_console.catalog.resolver import ActionResolver
from ops_console.domain.models import ActionCategory, ContextType, Role


@pytest.fixture
def resolver(actions, permissions):
    return ActionResolver(actions, permissions)


def test_get_and_all(actions):
    assert len(actions.all()) == len(DEFAULT_ACTIONS)
    assert actions.get("drop-database").name == "Drop Database"
    assert actions.get("missing") is None


def test_by_category_exact_match(actions):
    data_ids = [a.id for a in actions.by_category(ActionCategory.DATA)]
    assert data_ids == ["drop-database", "vacuum-database"]
    assert [a.id for a in actions.by_category("deployment")] == ["deploy-hotfix"]
    assert actions.by_category("unknown") == []


def test_categories_summary(actions):
    summaries = {s.id: (s.name, s.count) for s in actions.categories()}
    assert summaries == {
        ActionCategory.PROVISIONING: ("Provisioning", 1),
        ActionCategory.REMEDIATION: ("Remediation", 4),
        ActionCategory.DEPLOYMENT: ("Deployment", 1),
        ActionCategory.DATA: ("Data", 2),
    }


def test_visible_to(actions, permissions):
    assert actions.visible_to(Role.VIEWER, permissions) == []
    assert [a.id for a in actions.visible_to(Role.DEV, permissions)] == ["provision-dev-env"]

    sre_ids = {a.id for a in actions.visible_to(Role.SRE, permissions)}
    assert "scale-asg" in sre_ids
    assert "deploy-hotfix" not in sre_ids
    assert "drop-database" not in sre_ids

    assert len(actions.visible_to(Role.ADMIN, permissions)) == len(DEFAULT_ACTIONS)


def test_duplicate_action_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate action id"):
        ActionCatalog([DEFAULT_ACTIONS[0], DEFAULT_ACTIONS[0]])


def test_duplicate_template_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate query template id"):
        QueryTemplateCatalog([DEFAULT_QUERY_TEMPLATES[0], DEFAULT_QUERY_TEMPLATES[0]])


def test_templates_for_role(templates):
    assert templates.for_role(Role.VIEWER) == []
    assert templates.for_role("nobody") == []
    assert len(templates.for_role(Role.DEV)) == 4
    assert templates.get("query-user-by-id").params[0].name == "userId"


def test_resolve_for_signal_ranks_matches(resolver):
    ranked = resolver.resolve_for_signal({"redis"}, ContextType.INCIDENT, Role.SRE)
    assert [a.id for a in ranked] == ["flush-redis-cache", "provision-dev-env"]


def test_resolve_for_signal_ties_keep_catalog_order(resolver):
    ranked = resolver.resolve_for_signal({"api", "gateway"}, ContextType.INCIDENT, Role.ADMIN)
    assert [a.id for a in ranked] == [
        "restart-pods",
        "scale-asg",
        "deploy-hotfix",
        "restart-envoy",
        "provision-dev-env",
    ]


def test_resolve_for_signal_requires_context_match(resolver):
    ranked = resolver.resolve_for_signal({"database"}, ContextType.SECURITY_ALERT, Role.ADMIN)
    assert [a.id for a in ranked] == ["provision-dev-env"]


def test_resolve_for_signal_respects_permissions(resolver):
    assert resolver.resolve_for_signal({"redis"}, ContextType.INCIDENT, Role.VIEWER) == []


def test_for_context_type(resolver):
    ids = [a.id for a in resolver.for_context_type(ContextType.DEPLOYMENT_FAILURE, Role.ADMIN)]
    assert ids == ["provision-dev-env", "restart-pods", "deploy-hotfix"]


def test_relevance_score(actions):
    flush = actions.get("flush-redis-cache")
    assert ActionResolver.relevance_score(
        flush, frozenset({"redis", "cache"}), ContextType.INFRASTRUCTURE
    ) == 40
    assert ActionResolver.relevance_score(
        actions.get("provision-dev-env"), frozenset(), None
    ) == -5
