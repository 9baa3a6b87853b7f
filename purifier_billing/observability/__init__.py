"""
Observability module - Logging, Metrics, and Tracing.
"""

from purifier_billing.observability.logging import get_logger, log_context, setup_logging
from purifier_billing.observability.metrics import metrics
from purifier_billing.observability.tracing import annotate_span, setup_tracing

__all__ = [
    "annotate_span",
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
