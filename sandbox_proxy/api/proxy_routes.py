"""
Proxy API Routes
GET and POST entry points that serve upstream pages inside the sandbox frame
"""

import asyncio
from typing import Awaitable, Optional

from fastapi import APIRouter, Query, Request, Response
from loguru import logger

from sandbox_proxy.core.exceptions import InvalidInput, MissingUrl
from sandbox_proxy.models import FetchRequest
from sandbox_proxy.services.error_pages import internal_error_page
from sandbox_proxy.services.response_emitter import emit_html, emit_invalid_input
from sandbox_proxy.services.url_resolver import resolve_target

router = APIRouter()

# Mounted a second time under the old prefix for backward compatibility
legacy_router = APIRouter()

# Nginx convention for "client went away before we answered"
CLIENT_CLOSED_REQUEST = 499


def resolve_identity(request: Request) -> str:
    """Caller identity used to look up the security policy"""
    return (
        request.headers.get("X-Session-ID")
        or request.cookies.get("session_id")
        or request.app.state.settings.default_identity
    )


async def _run_until_disconnect(request: Request, work: Awaitable[Response], poll_interval: float) -> Response:
    """Await ``work`` but cancel it as soon as the caller disconnects"""

    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Caller disconnected, cancelling upstream fetch for {request.url}")
                task.cancel()
                return Response(status_code=CLIENT_CLOSED_REQUEST)
    finally:
        if not task.done():
            task.cancel()


async def _proxy(request: Request, url: Optional[str]) -> Response:
    settings = request.app.state.settings
    proxy_service = request.app.state.proxy_service

    try:
        if not url:
            raise MissingUrl()
        target = resolve_target(url, settings.redirector_hosts)
    except InvalidInput as e:
        logger.debug(f"Rejected proxy request for {url!r}: {e.message}")
        return emit_invalid_input(e.message)

    fetch_request = FetchRequest(target_url=target, method=request.method)
    if request.method == "POST":
        # The body must be drained before anything else listens on the connection
        fetch_request = FetchRequest(
            target_url=target,
            method="POST",
            form_body=await request.body(),
            form_content_type=request.headers.get("content-type"),
        )

    identity = resolve_identity(request)
    logger.info(f"Proxy {request.method} {target} for {identity}")

    try:
        return await _run_until_disconnect(
            request,
            proxy_service.handle(fetch_request, identity),
            settings.disconnect_poll_interval,
        )
    except Exception:
        logger.exception(f"Unhandled error while proxying {target}")
        return emit_html(internal_error_page(target))


@router.get("")
async def proxy_get(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute URL to load"),
):
    """Load a page or asset through the proxy"""
    return await _proxy(request, url)


@router.post("")
async def proxy_post(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute URL the form submits to"),
):
    """Forward a form submission and serve the response page"""
    return await _proxy(request, url)


@legacy_router.get("")
async def legacy_proxy_get(request: Request, url: Optional[str] = Query(None)):
    """Legacy proxy endpoint"""
    return await _proxy(request, url)


@legacy_router.post("")
async def legacy_proxy_post(request: Request, url: Optional[str] = Query(None)):
    """Legacy proxy form endpoint"""
    return await _proxy(request, url)
