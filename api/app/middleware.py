"""HTTP middleware for the API."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths that are too frequent or too uninteresting to log per request
EXCLUDED_PATHS = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per API call with method, path, status and duration.

    Client errors are logged at INFO and server errors at WARNING; the error
    handlers log the details.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        path = request.url.path

        if request.method == "OPTIONS" or path in EXCLUDED_PATHS:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = f"{request.method} {path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        if response.status_code >= 500:
            logger.warning(message)
        elif response.status_code >= 400:
            logger.info(message)
        else:
            logger.debug(message)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers for a JSON API.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Referrer policy - only send origin on cross-origin requests
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS - Force HTTPS in production
        environment = os.getenv("ENVIRONMENT", "development")
        if environment == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        # The API only serves JSON (plus the interactive docs)
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response
