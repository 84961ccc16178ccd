import re
import time
from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from explorer.base.metrics import DURATION_BUCKETS, SIZE_BUCKETS

HEX_HASH = re.compile(r"^[0-9a-fA-F]{32,}$")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collects HTTP request metrics into the service registry"""

    def __init__(self, app: ASGIApp, metrics_registry=None, service_name: str = "api"):
        super().__init__(app)
        self.metrics_registry = metrics_registry
        self.service_name = service_name

        if metrics_registry:
            self._init_metrics()
        else:
            logger.warning(f"No metrics registry provided for {service_name}")

    def _init_metrics(self):
        self.http_requests_total = self.metrics_registry.create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status']
        )

        self.http_request_duration = self.metrics_registry.create_histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            buckets=DURATION_BUCKETS
        )

        self.http_requests_in_progress = self.metrics_registry.create_gauge(
            'http_requests_in_progress',
            'HTTP requests currently being processed',
            ['method', 'endpoint']
        )

        self.http_response_size_bytes = self.metrics_registry.create_histogram(
            'http_response_size_bytes',
            'HTTP response size in bytes',
            ['method', 'endpoint'],
            buckets=SIZE_BUCKETS
        )

        self.http_errors_total = self.metrics_registry.create_counter(
            'http_errors_total',
            'Total HTTP errors',
            ['method', 'endpoint', 'status', 'error_type']
        )

    async def dispatch(self, request: Request, call_next):
        if not self.metrics_registry or request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = normalize_endpoint(request.url.path)

        self.http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        try:
            response = await call_next(request)
            status_code = response.status_code

            self.http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
            self.http_request_duration.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)

            content_length = response.headers.get('content-length')
            if content_length and content_length.isdigit():
                self.http_response_size_bytes.labels(method=method, endpoint=endpoint).observe(int(content_length))

            if status_code >= 400:
                self.http_errors_total.labels(
                    method=method, endpoint=endpoint, status=status_code,
                    error_type=categorize_error(status_code)
                ).inc()

            return response

        except Exception as e:
            self.http_errors_total.labels(
                method=method, endpoint=endpoint, status=500, error_type="internal_error"
            ).inc()
            logger.error(f"Error processing request {method} {request.url.path}: {e}")
            raise

        finally:
            self.http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()


def normalize_endpoint(path: str) -> str:
    """Replace hashes and numeric ids in a path to keep label cardinality low"""
    normalized_parts = []
    for part in path.strip('/').split('/'):
        if HEX_HASH.match(part):
            normalized_parts.append('{hash}')
        elif part.isdigit():
            normalized_parts.append('{id}')
        else:
            normalized_parts.append(part)

    return '/' + '/'.join(normalized_parts) if normalized_parts != [''] else '/'


def categorize_error(status_code: int) -> str:
    if status_code == 401:
        return "unauthorized"
    elif status_code == 404:
        return "not_found"
    elif status_code == 422:
        return "validation_error"
    elif status_code == 429:
        return "rate_limited"
    elif 400 <= status_code < 500:
        return "client_error"
    elif 500 <= status_code < 600:
        return "server_error"
    else:
        return "unknown"
