"""
Response Emitter
Uniform outbound headers for everything the proxy sends back
"""

from typing import MutableMapping

from fastapi import Response
from fastapi.responses import HTMLResponse, JSONResponse

from sandbox_proxy.models import FetchResult


SANDBOX_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "Content-Security-Policy": "frame-ancestors 'self'",
    "X-Content-Type-Options": "nosniff",
}


def apply_sandbox_headers(headers: MutableMapping[str, str]) -> None:
    """Frame only inside our own origin, and never sniff content types"""
    for name, value in SANDBOX_HEADERS.items():
        headers[name] = value


def emit_html(html: str) -> HTMLResponse:
    """Rewritten page or error page; always 200 so the frame renders it"""

    response = HTMLResponse(
        content=html,
        status_code=200,
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Access-Control-Allow-Origin": "*",
        },
    )
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    apply_sandbox_headers(response.headers)
    return response


def emit_asset(result: FetchResult, cache_ttl: int) -> Response:
    """Non-HTML body passed through byte for byte"""

    response = Response(
        content=result.body,
        status_code=200,
        headers={
            "Cache-Control": f"public, max-age={cache_ttl}",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )
    # Upstream type verbatim; media_type would append a charset to text/*
    response.headers["Content-Type"] = result.content_type or "application/octet-stream"
    apply_sandbox_headers(response.headers)
    return response


def emit_invalid_input(message: str) -> JSONResponse:
    response = JSONResponse(status_code=400, content={"error": message})
    apply_sandbox_headers(response.headers)
    return response
