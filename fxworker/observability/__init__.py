"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from fxworker.observability.logging import bind_worker, job_context, setup_logging
from fxworker.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from fxworker.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "bind_worker",
    "job_context",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
]
