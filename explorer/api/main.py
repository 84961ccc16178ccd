from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from loguru import logger

from explorer.base import (
    get_cors_origins,
    get_network,
    get_rate_limit_per_hour,
    get_service_name,
    log_service_start,
    setup_enhanced_logger,
    setup_metrics,
)
from explorer.api.exceptions import NotFoundError
from explorer.api.middleware.api_key import api_key_middleware
from explorer.api.middleware.correlation_middleware import CorrelationMiddleware
from explorer.api.middleware.prometheus_middleware import PrometheusMiddleware
from explorer.api.middleware.rate_limiting import InMemoryRateLimiter, create_rate_limit_middleware
from explorer.api.routers import assets, transactions
from explorer.api.services.enrichment_service import EnrichmentMetrics

version = "0.1.0"


async def not_found_handler(request: Request, exc: NotFoundError):
    logger.bind(path=request.url.path).info("Not found: {}", str(exc))
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def create_app(metrics_registry=None, rate_limit_per_hour=None) -> FastAPI:
    service_name = get_service_name()
    setup_enhanced_logger(service_name)
    metrics_registry = metrics_registry or setup_metrics(service_name, version)
    rate_limiter = InMemoryRateLimiter(
        rate_limit_per_hour or get_rate_limit_per_hour(),
        metrics_registry=metrics_registry
    )
    cors_origins = get_cors_origins()

    app = FastAPI(
        title="Chain Explorer API",
        description="API for transactions, blocks and assets indexed from the chain",
        version=version,
        docs_url="/docs",
        openapi_url="/openapi.json"
    )
    app.state.metrics_registry = metrics_registry
    app.state.enrichment_metrics = EnrichmentMetrics(metrics_registry)

    # Last added runs first: correlation wraps everything, the key check runs right before routing
    app.add_middleware(BaseHTTPMiddleware, dispatch=api_key_middleware)
    app.add_middleware(BaseHTTPMiddleware, dispatch=create_rate_limit_middleware(rate_limiter))
    app.add_middleware(PrometheusMiddleware, metrics_registry=metrics_registry, service_name=service_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(NotFoundError, not_found_handler)

    app.include_router(transactions.router)
    app.include_router(assets.router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint():
        return Response(content=metrics_registry.get_metrics_text(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "version": version
        }

    log_service_start(
        service_name,
        version=version,
        network=get_network(),
        cors_origins=cors_origins,
        rate_limit_per_hour=rate_limiter.limit_per_hour,
    )
    return app


# Run with: uvicorn explorer.api.main:app --host 0.0.0.0 --port 8000
app = create_app()
