"""
Prometheus metrics configuration for Support Desk.

Defines custom metrics for routing, compaction, tool use and persistence.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "supportdesk"


# ============================================================================
# Chat Metrics
# ============================================================================

chat_messages_total = Counter(
    f"{NAMESPACE}_chat_messages_total",
    "Total number of user chat messages accepted",
)

router_decisions_total = Counter(
    f"{NAMESPACE}_router_decisions_total",
    "Router classifications by resulting agent and decision path",
    ["agent", "path"],  # path: "json", "keyword", "error"
)

compactions_total = Counter(
    f"{NAMESPACE}_compactions_total",
    "Context compaction attempts by outcome",
    ["outcome"],  # "summarized", "failed"
)

assistant_messages_persisted_total = Counter(
    f"{NAMESPACE}_assistant_messages_persisted_total",
    "Assistant messages persisted after a completed stream",
    ["agent_type"],
)

escalations_total = Counter(
    f"{NAMESPACE}_escalations_total",
    "Assistant replies that requested a human handoff",
    ["agent_type"],
)

llm_errors_total = Counter(
    f"{NAMESPACE}_llm_errors_total",
    "Model-provider failures by classified error type",
    ["error_type"],
)

model_requests_total = Counter(
    f"{NAMESPACE}_model_requests_total",
    "Requests sent to the model provider",
    ["mode"],  # "generate", "stream_step"
)


# ============================================================================
# Tool Metrics
# ============================================================================

tool_calls_total = Counter(
    f"{NAMESPACE}_tool_calls_total",
    "Total number of agent tool calls executed",
    ["tool_name", "status"],  # status: "success", "error"
)

tool_call_duration_seconds = Histogram(
    f"{NAMESPACE}_tool_call_duration_seconds",
    "Agent tool call execution duration in seconds",
    ["tool_name"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0),
)

fallback_lookups_total = Counter(
    f"{NAMESPACE}_fallback_lookups_total",
    "Two-tier lookups by the tier that answered",
    ["table", "tier"],  # tier: "primary", "fallback", "miss"
)


# ============================================================================
# Rate Limiting / Database Metrics
# ============================================================================

rate_limited_requests_total = Counter(
    f"{NAMESPACE}_rate_limited_requests_total",
    "Requests rejected by the rate limiter",
)

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)


# ============================================================================
# Escalation Metrics
# ============================================================================

escalation_workflows_total = Counter(
    f"{NAMESPACE}_escalation_workflows_total",
    "Human-handoff escalation workflow runs by outcome",
    ["outcome"],  # "started", "assigned", "failed"
)
