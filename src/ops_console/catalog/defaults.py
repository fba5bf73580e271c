"""Built-in action catalog, query templates and role permissions."""

from __future__ import annotations

from ops_console.domain.models import (
    WILDCARD_ACTION,
    Action,
    ActionCategory,
    ContextType,
    ParamSpec,
    ParamType,
    Permission,
    QueryTemplate,
    QueryTemplateType,
    RiskLevel,
    Role,
)

_OPERATORS = frozenset({Role.SRE, Role.ADMIN})
_ENGINEERS = frozenset({Role.DEV, Role.SRE, Role.ADMIN})

DEFAULT_PERMISSIONS: tuple[Permission, ...] = (
    Permission(role=Role.VIEWER),
    Permission(
        role=Role.DEV,
        allowed_actions=frozenset({WILDCARD_ACTION}),
        allowed_risk_levels=frozenset({RiskLevel.LOW, RiskLevel.MEDIUM}),
    ),
    Permission(
        role=Role.SRE,
        allowed_actions=frozenset({WILDCARD_ACTION}),
        allowed_risk_levels=frozenset({RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH}),
        can_approve=True,
    ),
    Permission(
        role=Role.ADMIN,
        allowed_actions=frozenset({WILDCARD_ACTION}),
        allowed_risk_levels=frozenset(RiskLevel),
        can_approve=True,
    ),
)

DEFAULT_ACTIONS: tuple[Action, ...] = (
    Action(
        id="provision-dev-env",
        name="Provision Dev Environment",
        description="Create a new development environment with all required services",
        category=ActionCategory.PROVISIONING,
        risk_level=RiskLevel.LOW,
        required_params=(
            ParamSpec("envName", ParamType.STRING, "Environment Name", placeholder="my-dev-env"),
            ParamSpec(
                "region",
                ParamType.SELECT,
                "Region",
                options=("us-east-1", "us-west-2", "eu-west-1"),
            ),
            ParamSpec("includeDb", ParamType.BOOLEAN, "Include Database", required=False),
        ),
        required_roles=_ENGINEERS,
        workflow_id="provision-dev-env-workflow",
        estimated_duration="5-10 min",
    ),
    Action(
        id="restart-pods",
        name="Restart Pods",
        description="Restart pods in a Kubernetes namespace",
        category=ActionCategory.REMEDIATION,
        risk_level=RiskLevel.MEDIUM,
        required_params=(
            ParamSpec(
                "namespace",
                ParamType.SELECT,
                "Namespace",
                options=("production", "staging", "development"),
            ),
            ParamSpec("deployment", ParamType.STRING, "Deployment Name", placeholder="api-server"),
            ParamSpec(
                "gracePeriod",
                ParamType.NUMBER,
                "Grace Period (seconds)",
                required=False,
                placeholder="30",
            ),
        ),
        required_roles=_OPERATORS,
        target_services=("kubernetes", "gateway", "api", "web", "envoy"),
        context_types=(ContextType.INCIDENT, ContextType.DEPLOYMENT_FAILURE),
        workflow_id="restart-pods-workflow",
        estimated_duration="1-3 min",
    ),
    Action(
        id="flush-redis-cache",
        name="Flush Redis Cache",
        description="Clear Redis cache for a specific service or pattern",
        category=ActionCategory.REMEDIATION,
        risk_level=RiskLevel.MEDIUM,
        required_params=(
            ParamSpec(
                "cluster",
                ParamType.SELECT,
                "Redis Cluster",
                options=("sessions", "api-cache", "feature-flags"),
            ),
            ParamSpec(
                "pattern", ParamType.STRING, "Key Pattern", required=False, placeholder="user:*"
            ),
        ),
        required_roles=_OPERATORS,
        target_services=("redis", "cache", "sessions"),
        context_types=(ContextType.INCIDENT, ContextType.INFRASTRUCTURE),
        workflow_id="flush-redis-workflow",
        estimated_duration="< 1 min",
    ),
    Action(
        id="scale-asg",
        name="Scale Auto Scaling Group",
        description="Adjust the desired capacity of an AWS Auto Scaling Group",
        category=ActionCategory.REMEDIATION,
        risk_level=RiskLevel.HIGH,
        required_params=(
            ParamSpec("asgName", ParamType.STRING, "ASG Name", placeholder="api-server-asg"),
            ParamSpec("desiredCapacity", ParamType.NUMBER, "Desired Capacity", placeholder="4"),
            ParamSpec("minSize", ParamType.NUMBER, "Min Size", required=False),
            ParamSpec("maxSize", ParamType.NUMBER, "Max Size", required=False),
        ),
        required_roles=_OPERATORS,
        target_services=("aws", "asg", "api", "gateway"),
        context_types=(ContextType.INCIDENT, ContextType.INFRASTRUCTURE),
        workflow_id="scale-asg-workflow",
        estimated_duration="3-5 min",
    ),
    Action(
        id="deploy-hotfix",
        name="Deploy Hotfix",
        description="Deploy a hotfix to production with expedited review",
        category=ActionCategory.DEPLOYMENT,
        risk_level=RiskLevel.CRITICAL,
        required_params=(
            ParamSpec(
                "service",
                ParamType.SELECT,
                "Service",
                options=("api", "web", "worker", "gateway"),
            ),
            ParamSpec("version", ParamType.STRING, "Version/Tag", placeholder="v2.4.1-hotfix"),
            ParamSpec(
                "rollbackVersion", ParamType.STRING, "Rollback Version", placeholder="v2.4.0"
            ),
            ParamSpec("jiraTicket", ParamType.STRING, "JIRA Ticket", placeholder="OPS-1234"),
        ),
        required_roles=_OPERATORS,
        target_services=("api", "web", "worker", "gateway"),
        context_types=(ContextType.INCIDENT, ContextType.DEPLOYMENT_FAILURE),
        workflow_id="deploy-hotfix-workflow",
        estimated_duration="10-15 min",
    ),
    Action(
        id="drop-database",
        name="Drop Database",
        description="DANGER: Permanently delete a database. This action cannot be undone.",
        category=ActionCategory.DATA,
        risk_level=RiskLevel.CRITICAL,
        required_params=(
            ParamSpec("database", ParamType.STRING, "Database Name", placeholder="test_db"),
            ParamSpec("confirmName", ParamType.STRING, "Type database name to confirm"),
        ),
        required_roles=frozenset({Role.ADMIN}),
        target_services=("database", "postgres", "mysql"),
        context_types=(ContextType.INFRASTRUCTURE,),
        workflow_id="drop-database-workflow",
        estimated_duration="1-2 min",
    ),
    Action(
        id="vacuum-database",
        name="Vacuum Database",
        description="Run VACUUM ANALYZE on PostgreSQL database tables to reclaim space",
        category=ActionCategory.DATA,
        risk_level=RiskLevel.MEDIUM,
        required_params=(
            ParamSpec(
                "database",
                ParamType.SELECT,
                "Database",
                options=("production", "staging", "analytics"),
            ),
            ParamSpec(
                "tableName",
                ParamType.STRING,
                "Table Name (optional)",
                required=False,
                placeholder="users",
            ),
        ),
        required_roles=_OPERATORS,
        target_services=("database", "postgres"),
        context_types=(ContextType.INFRASTRUCTURE,),
        workflow_id="vacuum-database-workflow",
        estimated_duration="5-30 min",
    ),
    Action(
        id="restart-envoy",
        name="Restart Envoy Pods",
        description="Rolling restart of Envoy proxy pods in the service mesh",
        category=ActionCategory.REMEDIATION,
        risk_level=RiskLevel.MEDIUM,
        required_params=(
            ParamSpec(
                "namespace", ParamType.SELECT, "Namespace", options=("production", "staging")
            ),
            ParamSpec("graceful", ParamType.BOOLEAN, "Graceful Drain", required=False),
        ),
        required_roles=_OPERATORS,
        target_services=("envoy", "gateway", "api-gateway"),
        context_types=(ContextType.INCIDENT, ContextType.INFRASTRUCTURE),
        workflow_id="restart-envoy-workflow",
        estimated_duration="2-5 min",
    ),
)

DEFAULT_QUERY_TEMPLATES: tuple[QueryTemplate, ...] = (
    QueryTemplate(
        id="query-user-by-email",
        name="Query User by Email",
        description="Find a user record by their email address",
        template_sql=(
            "SELECT id, username, email, created_at, last_login FROM users WHERE email = :email"
        ),
        type=QueryTemplateType.READ,
        params=(
            ParamSpec(
                "email", ParamType.EMAIL, "Email Address", placeholder="user@company.com"
            ),
        ),
        required_roles=_ENGINEERS,
    ),
    QueryTemplate(
        id="query-user-by-id",
        name="Query User by ID",
        description="Find a user record by their user ID",
        template_sql=(
            "SELECT id, username, email, created_at, last_login FROM users WHERE id = :userId"
        ),
        type=QueryTemplateType.READ,
        params=(ParamSpec("userId", ParamType.STRING, "User ID", placeholder="U001"),),
        required_roles=_ENGINEERS,
    ),
    QueryTemplate(
        id="count-events-by-source",
        name="Count Events by Source",
        description="Get event counts grouped by source for a time range",
        template_sql=(
            "SELECT source, COUNT(*) AS count FROM events "
            "WHERE timestamp >= :startDate AND timestamp <= :endDate GROUP BY source"
        ),
        type=QueryTemplateType.AGGREGATE,
        params=(
            ParamSpec("startDate", ParamType.STRING, "Start Date", placeholder="2024-01-01"),
            ParamSpec("endDate", ParamType.STRING, "End Date", placeholder="2024-01-31"),
        ),
        required_roles=_ENGINEERS,
    ),
    QueryTemplate(
        id="find-active-blockers",
        name="Find Active Blockers",
        description="List all unresolved blockers with their age",
        template_sql=(
            "SELECT id, message, severity, username, timestamp, age_hours FROM events "
            "WHERE type = 'blocker' AND resolved = false ORDER BY timestamp DESC LIMIT :limit"
        ),
        type=QueryTemplateType.READ,
        params=(
            ParamSpec(
                "limit", ParamType.NUMBER, "Max Results", required=False, placeholder="50"
            ),
        ),
        required_roles=_ENGINEERS,
    ),
)
