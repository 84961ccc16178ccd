"""
Capability key check for mutating endpoints.

Runs before routing, so a rejected request never reaches a handler or the
store. The key is read from `Authorization: Bearer <key>` or `x-api-key`.
"""

import hmac
from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from explorer.base import get_api_key

PROTECTED_ROUTES = {
    ("POST", "/transactions"),
}


def extract_api_key(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    api_key = request.headers.get("x-api-key", "").strip()
    return api_key or None


def is_valid_api_key(request: Request) -> bool:
    expected = get_api_key()
    provided = extract_api_key(request)
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def is_protected(request: Request) -> bool:
    path = request.url.path.rstrip("/") or "/"
    return (request.method, path) in PROTECTED_ROUTES


async def api_key_middleware(request: Request, call_next):
    """Reject requests to protected routes that lack a valid API key"""
    if is_protected(request) and not is_valid_api_key(request):
        logger.warning(
            "Rejected request without valid API key",
            extra={
                "endpoint": request.url.path,
                "method": request.method,
                "key_provided": extract_api_key(request) is not None,
            }
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Unauthorized"}
        )

    return await call_next(request)
