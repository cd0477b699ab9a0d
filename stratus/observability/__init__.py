"""Observability: structured logging, request context, metrics.

structlog for logging, Prometheus for metrics, optional OpenTelemetry
instrumentation of the FastAPI app.
"""
