"""
Security Middleware for Audiopub.

- Security headers on every response (CSP allows same-origin media playback)
- HTTPS enforcement in production
"""

import logging
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "media-src 'self' blob:; "
    "img-src 'self' data: https:; "
    "style-src 'self' 'unsafe-inline'; "
    "connect-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self'"
)

PERMISSIONS_POLICY = (
    "geolocation=(), "
    "camera=(), "
    "payment=(), "
    "usb=()"
)

# =============================================================================
# Security Headers Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Strict-Transport-Security is only sent in production, where the
    service sits behind HTTPS.
    """

    def __init__(self, app: ASGIApp, environment: str = "development"):
        super().__init__(app)
        self.environment = environment
        self.is_production = environment == "production"

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        response.headers["Permissions-Policy"] = PERMISSIONS_POLICY

        if self.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

# =============================================================================
# HTTPS Redirect Middleware
# =============================================================================

class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect plain HTTP requests to HTTPS. Only active in production."""

    def __init__(self, app: ASGIApp, environment: str = "development"):
        super().__init__(app)
        self.is_production = environment == "production"

    async def dispatch(self, request: Request, call_next):
        if self.is_production and request.url.scheme == "http":
            https_url = request.url.replace(scheme="https")
            logger.info(f"Redirecting HTTP to HTTPS: {request.url.path}")
            return Response(status_code=301, headers={"Location": str(https_url)})
        return await call_next(request)
