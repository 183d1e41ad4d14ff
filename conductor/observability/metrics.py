"""Prometheus metrics for agent block execution."""

from prometheus_client import Counter, Histogram

# Execution metrics
AGENT_EXECUTIONS = Counter(
    "conductor_agent_executions_total",
    "Agent block executions by outcome",
    labelnames=["outcome"],
)

AGENT_EXECUTION_LATENCY = Histogram(
    "conductor_agent_execution_latency_seconds",
    "Time until execute_agent_block returns",
    labelnames=["mode"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Intent gate
INTENT_VERDICTS = Counter(
    "conductor_intent_verdicts_total",
    "Intent gate verdicts",
    labelnames=["decision", "degraded"],
)

# Tool resolution
TOOLS_RESOLVED = Counter(
    "conductor_tools_resolved_total",
    "Tool descriptors handed to the provider",
    labelnames=["kind"],
)

TOOLS_DROPPED = Counter(
    "conductor_tools_dropped_total",
    "Declared tools left out of a request",
    labelnames=["reason"],
)

# Memory
MEMORY_OPERATIONS = Counter(
    "conductor_memory_operations_total",
    "Memory store calls",
    labelnames=["operation", "status"],
)

# Provider dispatch
PROVIDER_ERRORS = Counter(
    "conductor_provider_errors_total",
    "Provider failures by class",
    labelnames=["provider", "error_type"],
)

PROVIDER_LATENCY = Histogram(
    "conductor_provider_latency_seconds",
    "Provider request latency in seconds",
    labelnames=["provider", "mode"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

LLM_TOKENS = Counter(
    "conductor_llm_tokens_total",
    "Total LLM tokens used",
    labelnames=["provider", "model", "direction"],
)

STRUCTURED_OUTPUT_MISMATCHES = Counter(
    "conductor_structured_output_mismatches_total",
    "Responses that did not match the requested format",
)
