"""
Proxy Service
Drives one proxied call from fetch to emitted response
"""

from typing import Optional

import httpx
from fastapi import Response
from loguru import logger

from config.settings import Settings
from sandbox_proxy.core.exceptions import UpstreamUnreachable
from sandbox_proxy.models import FetchRequest, RewriteContext
from sandbox_proxy.services.content_classifier import is_html_response
from sandbox_proxy.services.content_rewriter import ContentRewriter
from sandbox_proxy.services.error_pages import unreachable_page, upstream_error_page
from sandbox_proxy.services.outbound_fetcher import OutboundFetcher
from sandbox_proxy.services.response_emitter import emit_asset, emit_html
from sandbox_proxy.services.security_filter import SecurityFilter
from sandbox_proxy.services.settings_store import SecuritySettingsStore


class ProxyService:
    """Fetch, classify, rewrite, filter and emit a single upstream resource"""

    def __init__(
        self,
        settings: Settings,
        settings_store: SecuritySettingsStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.settings_store = settings_store
        self.fetcher = OutboundFetcher(settings, transport=transport)
        self.rewriter = ContentRewriter(settings)
        self.security_filter = SecurityFilter()

    async def handle(self, request: FetchRequest, identity: str) -> Response:
        """Serve ``request`` for the caller ``identity``.

        Upstream failures become 200 error pages so the sandbox frame always
        has something to render. Anything unexpected propagates to the route.
        """

        policy = await self.settings_store.get(identity)

        try:
            outcome = await self.fetcher.fetch(request, policy)
        except UpstreamUnreachable as e:
            logger.warning(f"Upstream unreachable: {e}")
            return emit_html(unreachable_page(request.target_url, e.reason))

        result = outcome.result
        if result.status_code >= 400:
            return emit_html(upstream_error_page(result, self.settings.proxy_prefix))

        if not is_html_response(result):
            return emit_asset(result, self.settings.asset_cache_ttl)

        context = RewriteContext.from_result(result, self.settings.proxy_prefix)

        if request.method == "POST":
            # Form responses only get their links routed back through the proxy
            return emit_html(self.rewriter.rewrite_links(result.text, context))

        html = self.rewriter.rewrite(result.text, context)
        html = self.security_filter.apply(html, policy)
        return emit_html(html)
