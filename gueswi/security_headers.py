"""
Security Headers Middleware for FastAPI

Adds security headers to API responses:
- X-Frame-Options / X-Content-Type-Options / Referrer-Policy
- Content-Security-Policy (JSON API, media from self for IVR audio)
- Strict-Transport-Security (production only)
- Permissions-Policy (microphone allowed for the softphone)
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import FRONTEND_URL, IS_PRODUCTION

logger = logging.getLogger(__name__)


def get_csp_policy() -> str:
    """Content-Security-Policy for a JSON API that also serves uploaded audio"""
    directives = [
        "default-src 'self'",
        f"frame-ancestors 'self' {FRONTEND_URL}",
        "img-src 'self' data: blob:",
        "media-src 'self' blob:",
        f"connect-src 'self' {FRONTEND_URL} ws: wss:",
        "base-uri 'none'",
        "form-action 'self'",
    ]
    return "; ".join(directives)


def get_permissions_policy() -> str:
    features = [
        "accelerometer=()",
        "camera=()",
        "geolocation=()",
        "gyroscope=()",
        "magnetometer=()",
        "microphone=(self)",
        "payment=()",
        "usb=()",
    ]
    return ", ".join(features)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware that adds security headers to all non-excluded responses"""

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = get_csp_policy()

        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        response.headers["Permissions-Policy"] = get_permissions_policy()

        # Uploaded audio and receipts may be cached, API payloads may not
        if "Cache-Control" not in response.headers and not path.startswith("/uploads"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"

        return response
