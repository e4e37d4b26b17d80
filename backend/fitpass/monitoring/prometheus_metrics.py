"""
Prometheus metrics for the FitPass payouts service.

Service timings come from the @measure_operation decorator; payout and
visit counters are incremented by the services that own those outcomes.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests and multiple app instances do not collide on the default one
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "fitpass_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "fitpass_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "fitpass_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 60.0),
)

service_operations_total = Counter(
    "fitpass_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "fitpass_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

payout_transfers_total = Counter(
    "fitpass_payout_transfers_total",
    "Club payout transfer outcomes",
    ["status"],  # paid | zero_amount | retry | failed | skipped
    registry=REGISTRY,
)

payouts_generated_total = Counter(
    "fitpass_payouts_generated_total",
    "Club payout rows written by monthly generation",
    ["result"],  # created | updated | protected | error
    registry=REGISTRY,
)

visits_logged_total = Counter(
    "fitpass_visits_logged_total",
    "Visits logged by subscription type",
    ["subscription_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'PayoutService')
            operation: Operation name (e.g., 'send_transfers')
            duration: Operation duration in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_payout_transfer(status: str) -> None:
        payout_transfers_total.labels(status=status).inc()

    @staticmethod
    def inc_payout_generated(result: str) -> None:
        payouts_generated_total.labels(result=result).inc()

    @staticmethod
    def inc_visit_logged(subscription_type: str) -> None:
        visits_logged_total.labels(subscription_type=subscription_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
