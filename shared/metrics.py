"""
Shared metrics configuration for the Tattler restaurant directory.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Type
import time

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest
from prometheus_client.metrics import MetricWrapperBase


MetricDefinition = Tuple[Type[MetricWrapperBase], str, str, Sequence[str]]

HTTP_METRICS: Tuple[MetricDefinition, ...] = (
    (Counter, "http_requests_total", "Total HTTP requests", ("method", "endpoint", "status_code")),
    (Histogram, "http_request_duration_seconds", "HTTP request duration in seconds", ("method", "endpoint")),
    (Counter, "errors_total", "Total unhandled errors", ("error_type", "service")),
)

RESTAURANT_METRICS: Tuple[MetricDefinition, ...] = (
    (Counter, "cache_hits_total", "Response cache hits", ("route",)),
    (Counter, "cache_misses_total", "Response cache misses", ("route",)),
    (Counter, "cache_invalidations_total", "Response cache invalidations", ("prefix",)),
    (Histogram, "store_operation_duration_seconds", "Document store operation duration in seconds", ("operation",)),
)

# service name -> metrics registered on top of HTTP_METRICS
SERVICE_METRICS: Dict[str, Tuple[MetricDefinition, ...]] = {
    "restaurants": RESTAURANT_METRICS,
}


class MetricsCollector:
    """Prometheus collectors for one service instance.

    Each collector owns its registry so several service instances (one per
    test, for example) never clash on metric names. Recording helpers
    ignore metric names the service did not register.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        for definition in HTTP_METRICS + SERVICE_METRICS.get(service_name, ()):
            self._register(*definition)

    def _register(self, kind: Type[MetricWrapperBase], name: str, documentation: str, labels: Sequence[str]) -> None:
        self._metrics[name] = kind(name, documentation, list(labels), registry=self.registry)

    def get_metric(self, name: str):
        return self._metrics.get(name)

    def render(self) -> bytes:
        """Registry contents in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self.observe_histogram("http_request_duration_seconds", duration, method=method, endpoint=endpoint)

    def record_error(self, error_type: str, service: Optional[str] = None):
        self.increment_counter("errors_total", error_type=error_type, service=service or self.service_name)

    @contextmanager
    def time_operation(self, metric_name: str, **labels) -> Iterator[None]:
        """Observe the wall time of the ``with`` block on histogram ``metric_name``."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.observe_histogram(metric_name, time.perf_counter() - start_time, **labels)

    def increment_counter(self, metric_name: str, **labels):
        metric = self._metrics.get(metric_name)
        if metric is not None:
            metric.labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        metric = self._metrics.get(metric_name)
        if metric is not None:
            metric.labels(**labels).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
