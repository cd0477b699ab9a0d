"""Prometheus metrics for Stratus."""

from prometheus_client import Counter, Gauge, Histogram

# Session metrics
ACTIVE_SESSIONS = Gauge(
    "stratus_active_sessions",
    "Number of conversations currently registered",
)

SESSIONS_CREATED = Counter(
    "stratus_sessions_created_total",
    "Total number of conversations created",
)

SESSIONS_CLOSED = Counter(
    "stratus_sessions_closed_total",
    "Total number of conversations removed from the registry",
    labelnames=["reason"],
)

# Request metrics
REQUEST_COUNT = Counter(
    "stratus_requests_total",
    "Total number of JSON-RPC messages processed",
    labelnames=["method", "outcome"],
)

# Tool metrics
TOOL_CALL_LATENCY = Histogram(
    "stratus_tool_call_latency_seconds",
    "Tool execution latency in seconds",
    labelnames=["tool"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Error metrics
ERRORS = Counter(
    "stratus_errors_total",
    "Total number of errors returned to clients",
    labelnames=["error_type"],
)
