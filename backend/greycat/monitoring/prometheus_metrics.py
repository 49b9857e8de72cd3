"""
Prometheus metrics module for GreyCat.

This module provides Prometheus-compatible metrics for service operations
(fed by @measure_operation) and for the real-time broadcast layer.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "greycat_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "greycat_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "greycat_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

broadcast_events_total = Counter(
    "greycat_broadcast_events_total",
    "Events published to channel topics",
    ["event"],
    registry=REGISTRY,
)

broadcast_deliveries_total = Counter(
    "greycat_broadcast_deliveries_total",
    "Per-connection event deliveries by outcome",
    ["outcome"],
    registry=REGISTRY,
)

realtime_connections = Gauge(
    "greycat_realtime_connections",
    "Currently registered real-time connections",
    ["transport"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade used by services and the broadcast hub."""

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
            service: Service name (e.g., 'MessageService')
            operation: Operation/method name (e.g., 'send_message')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_broadcast(event: str, delivered: int, dropped: int) -> None:
        broadcast_events_total.labels(event=event).inc()
        if delivered:
            broadcast_deliveries_total.labels(outcome="delivered").inc(delivered)
        if dropped:
            broadcast_deliveries_total.labels(outcome="dropped").inc(dropped)

    @staticmethod
    def record_dropped_handoff() -> None:
        broadcast_deliveries_total.labels(outcome="dropped_after_handoff").inc()

    @staticmethod
    def connection_opened(transport: str) -> None:
        realtime_connections.labels(transport=transport).inc()

    @staticmethod
    def connection_closed(transport: str) -> None:
        realtime_connections.labels(transport=transport).dec()

    @staticmethod
    def get_metrics() -> bytes:
        """Render all metrics in the Prometheus text format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
