"""
Security Middleware
Stamps the sandbox framing headers on every response
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from sandbox_proxy.services.response_emitter import apply_sandbox_headers


class SecurityMiddleware(BaseHTTPMiddleware):
    """Security headers for every route, including errors and assets"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        apply_sandbox_headers(response.headers)

        if "server" in response.headers:
            del response.headers["server"]

        return response
