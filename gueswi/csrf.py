"""
CSRF Protection Middleware for FastAPI

Implements double-submit cookie pattern for CSRF protection.
- Generates a CSRF token and sets it as a cookie
- Validates that the X-CSRF-Token header matches the cookie value
- Applies to state-changing methods (POST, PUT, PATCH, DELETE)
- Excludes public endpoints, webhooks and the session endpoints

The middleware is installed by main.py unless CSRF_ENABLED=false.
"""
import logging
import secrets
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import IS_PRODUCTION

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"

# Methods that require CSRF protection
PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS: list[str] = [
    "/api/login",
    "/api/register",
    "/api/logout",
    "/api/public/",  # Public booking (rate-limited)
    "/webhook/",  # Telephony webhooks
    "/health",
    "/docs",
    "/openapi.json",
    "/csrf-token",
    "/ws",
]


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token"""
    return secrets.token_urlsafe(32)


def is_path_exempt(path: str) -> bool:
    """Check if a path is exempt from CSRF protection"""
    return any(path.startswith(exempt) for exempt in EXEMPT_PATHS)


def _set_csrf_cookie(response: Response, token: str) -> None:
    # Readable by the SPA so it can echo the value in X-CSRF-Token
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        secure=IS_PRODUCTION,
        samesite="strict",
        max_age=86400,
        path="/",
    )


def _forbidden(detail: str) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": detail})


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    CSRF Protection Middleware using double-submit cookie pattern.

    How it works:
    1. On any request, if no CSRF cookie exists, generate one and set it
    2. For state-changing requests (POST/PUT/PATCH/DELETE):
       - Check that X-CSRF-Token header exists
       - Verify it matches the csrf_token cookie
       - Reject with 403 if missing or mismatched
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)

        needs_validation = (
            request.method in PROTECTED_METHODS
            and not is_path_exempt(request.url.path)
        )

        if needs_validation:
            csrf_header = request.headers.get(CSRF_HEADER_NAME)

            if not csrf_cookie:
                logger.warning(f"🚫 CSRF: Missing cookie for {request.method} {request.url.path}")
                return _forbidden("CSRF token missing. Please refresh the page and try again.")

            if not csrf_header:
                logger.warning(f"🚫 CSRF: Missing header for {request.method} {request.url.path}")
                return _forbidden("CSRF token header missing. Please refresh the page and try again.")

            if not secrets.compare_digest(csrf_cookie, csrf_header):
                logger.warning(f"🚫 CSRF: Token mismatch for {request.method} {request.url.path}")
                return _forbidden("CSRF token invalid. Please refresh the page and try again.")

        response = await call_next(request)

        if not csrf_cookie and request.url.path != "/csrf-token":
            _set_csrf_cookie(response, generate_csrf_token())
            logger.debug("🔑 CSRF: Set new token cookie")

        return response


async def csrf_token_handler(request: Request, response: Response):
    """
    Return the current CSRF token, issuing one when the browser has none.
    The frontend calls this on load before its first mutation.
    """
    existing_token = request.cookies.get(CSRF_COOKIE_NAME)
    if existing_token:
        return {"csrf_token": existing_token}

    new_token = generate_csrf_token()
    _set_csrf_cookie(response, new_token)
    return {"csrf_token": new_token}
