"""
Shared metrics configuration for the Storefront backend.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so several service instances (tests,
    workers) can coexist in one process without duplicate-series errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "storefront":
            self._setup_cache_metrics()
            self._setup_shipping_metrics()

    def _setup_cache_metrics(self):
        """Set up read-through cache and invalidation metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            ["namespace"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            ["namespace"],
            registry=self.registry
        )

        self._metrics["cache_fallbacks_total"] = Counter(
            "cache_fallbacks_total",
            "Reads served by the producer because the cache store failed",
            ["namespace", "operation"],
            registry=self.registry
        )

        self._metrics["cache_invalidated_keys_total"] = Counter(
            "cache_invalidated_keys_total",
            "Total cache keys deleted by invalidation",
            ["group"],
            registry=self.registry
        )

        self._metrics["cache_invalidation_errors_total"] = Counter(
            "cache_invalidation_errors_total",
            "Invalidation attempts that failed against the cache store",
            ["group"],
            registry=self.registry
        )

    def _setup_shipping_metrics(self):
        """Set up shipment dispatch and reconciliation metrics."""
        self._metrics["reconciliation_runs_total"] = Counter(
            "reconciliation_runs_total",
            "Total status reconciliation runs",
            ["result"],
            registry=self.registry
        )

        self._metrics["reconciliation_orders_total"] = Counter(
            "reconciliation_orders_total",
            "Orders processed by status reconciliation",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["reconciliation_duration_seconds"] = Histogram(
            "reconciliation_duration_seconds",
            "Status reconciliation run duration in seconds",
            registry=self.registry
        )

        self._metrics["shipment_dispatch_total"] = Counter(
            "shipment_dispatch_total",
            "Shipment dispatch outcomes",
            ["result"],
            registry=self.registry
        )

        self._metrics["shipment_dead_letters"] = Gauge(
            "shipment_dead_letters",
            "Shipment dispatch jobs waiting in the dead-letter queue",
            registry=self.registry
        )

    def render_latest(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric = self._metrics.get(operation_name)
            if metric is not None:
                (metric.labels(**labels) if labels else metric).observe(duration)

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc(amount)

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).set(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

