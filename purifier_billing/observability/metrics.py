"""
Metrics Collection with Prometheus.

Exposes HTTP and subscription accounting metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from purifier_billing.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    MODE = "mode"
    SOURCE = "source"
    ERROR_TYPE = "error_type"


class AccountingMetrics:
    """
    Centralized metrics for the billing API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Registrations and recharges (rate by mode, cycles extended)
    - Device usage readings (rate by provenance)
    - Errors by type and operation
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "purifier_billing_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "purifier_billing_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "purifier_billing_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "purifier_billing_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Accounting Metrics
        # ====================================================================
        self.registrations_total = Counter(
            "purifier_billing_registrations_total",
            "Total customers registered",
        )

        self.recharges_total = Counter(
            "purifier_billing_recharges_total",
            "Total cycle-establishing recharges",
            [MetricLabels.MODE, "extended"],
        )

        self.usage_readings_total = Counter(
            "purifier_billing_usage_readings_total",
            "Total device usage readings recorded",
            [MetricLabels.SOURCE],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "purifier_billing_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_recharge(self, mode: str, extended: bool) -> None:
        """Record a cycle establishment."""
        self.recharges_total.labels(mode=mode, extended=str(extended)).inc()

    def record_usage_reading(self, source: str) -> None:
        """Record a stored usage reading."""
        self.usage_readings_total.labels(source=source).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = AccountingMetrics()
