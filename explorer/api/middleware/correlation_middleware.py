"""
Correlation ID middleware.

Every request gets a correlation ID, taken from the X-Correlation-ID header
or generated, which is attached to all log records written while the
request is served and echoed back in the response headers.
"""

import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from explorer.base.enhanced_logging import generate_correlation_id, set_correlation_id


class CorrelationMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("x-correlation-id") or generate_correlation_id()

        request.state.correlation_id = correlation_id
        request.state.start_time = time.time()
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            set_correlation_id(None)
