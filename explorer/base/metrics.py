import threading
from typing import Dict, Optional
from prometheus_client import (
    CollectorRegistry, Counter, Histogram, Gauge, Info, generate_latest
)
from loguru import logger

# One registry per service name
_service_registries: Dict[str, "MetricsRegistry"] = {}
_metrics_lock = threading.Lock()

DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float('inf'))
SIZE_BUCKETS = (64, 256, 1024, 4096, 16384, 65536, 262144, 1048576, 4194304, 16777216, float('inf'))


class MetricsRegistry:
    """Metrics registry for a service, exposed through the /metrics endpoint"""

    def __init__(self, service_name: str, version: str = "unknown"):
        self.service_name = service_name
        self.registry = CollectorRegistry()

        self.service_info = Info(
            'service_info',
            'Service information',
            registry=self.registry
        )
        self.service_info.info({
            'service_name': service_name,
            'version': version,
            'component': 'api',
        })

        self.service_start_time = Gauge(
            'service_start_time_seconds',
            'Service start time in Unix timestamp',
            registry=self.registry
        )
        self.service_start_time.set_to_current_time()

        self.errors_total = Counter(
            'service_errors_total',
            'Total number of errors by type',
            ['error_type', 'component'],
            registry=self.registry
        )

    def create_counter(self, name: str, description: str, labelnames: list = None) -> Counter:
        return Counter(
            name, description,
            labelnames or [],
            registry=self.registry
        )

    def create_histogram(self, name: str, description: str, labelnames: list = None,
                         buckets: tuple = None) -> Histogram:
        kwargs = {
            'name': name,
            'documentation': description,
            'labelnames': labelnames or [],
            'registry': self.registry
        }
        if buckets:
            kwargs['buckets'] = buckets
        return Histogram(**kwargs)

    def create_gauge(self, name: str, description: str, labelnames: list = None) -> Gauge:
        return Gauge(
            name, description,
            labelnames or [],
            registry=self.registry
        )

    def get_metrics_text(self) -> str:
        """Get metrics in Prometheus text format"""
        return generate_latest(self.registry).decode('utf-8')



def setup_metrics(service_name: str, version: str = "unknown") -> MetricsRegistry:
    """
    Setup metrics for a service following the same pattern as setup_enhanced_logger.

    Calling it twice for the same service returns the existing registry.
    """
    with _metrics_lock:
        if service_name in _service_registries:
            logger.debug(f"Metrics already setup for {service_name}")
            return _service_registries[service_name]

        metrics_registry = MetricsRegistry(service_name, version)
        _service_registries[service_name] = metrics_registry

        logger.info(f"Metrics setup completed for service: {service_name}")
        return metrics_registry
