"""
Outbound Fetcher
Performs upstream requests with a browser-like header profile and a bounded
fallback chain for failed pages
"""

import asyncio
from typing import Dict, Optional
from urllib.parse import urlparse, urlunparse

import httpx
from loguru import logger

from config.settings import Settings
from sandbox_proxy.core.exceptions import UpstreamUnreachable
from sandbox_proxy.models import FetchOutcome, FetchRequest, FetchResult, SecurityPolicy
from sandbox_proxy.services.content_classifier import ResourceKind, guess_resource_kind


# Accept / Sec-Fetch-Dest / Sec-Fetch-Mode per resource kind
_KIND_HEADERS = {
    ResourceKind.STYLE: ("text/css,*/*;q=0.1", "style", "no-cors"),
    ResourceKind.SCRIPT: ("*/*", "script", "no-cors"),
    ResourceKind.IMAGE: ("image/webp,image/apng,image/*,*/*;q=0.8", "image", "no-cors"),
    ResourceKind.FONT: ("*/*", "font", "cors"),
    ResourceKind.DOCUMENT: (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
        "document",
        "navigate",
    ),
}


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def root_url(url: str) -> str:
    parsed = urlparse(url)
    return urlunparse((parsed.scheme, parsed.netloc, "/", "", "", ""))


def is_mobile_url(url: str) -> bool:
    parsed = urlparse(url)
    return (parsed.hostname or "").startswith("m.") or "/mobile" in parsed.path


def desktop_equivalent(url: str) -> str:
    """m.example.com/mobile/x -> www.example.com/x"""

    parsed = urlparse(url)
    netloc = parsed.netloc
    if (parsed.hostname or "").startswith("m."):
        netloc = "www." + netloc[2:]
    path = parsed.path.replace("/mobile", "", 1) or "/"
    return urlunparse((parsed.scheme, netloc, path, parsed.params, parsed.query, ""))


class OutboundFetcher:
    """Fetches upstream resources on behalf of a single proxied call"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def build_headers(self, url: str, policy: SecurityPolicy) -> Dict[str, str]:
        """Spoofed header profile shaped for the resource type of ``url``"""

        headers = {
            "User-Agent": policy.user_agent or self.settings.default_user_agent,
            "Accept-Language": self.settings.accept_language,
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Site": "cross-site",
            "Referer": _origin(url),
            "DNT": "1",
            "Cache-Control": "no-cache",
        }

        kind = guess_resource_kind(url)
        accept, dest, mode = _KIND_HEADERS[kind]
        headers["Accept"] = accept
        headers["Sec-Fetch-Dest"] = dest
        headers["Sec-Fetch-Mode"] = mode
        if kind is ResourceKind.DOCUMENT:
            headers["Upgrade-Insecure-Requests"] = "1"

        return headers

    def create_client(self) -> httpx.AsyncClient:
        """Fresh client per proxied call so no cookies or connections are shared"""

        return httpx.AsyncClient(
            transport=self.transport,
            timeout=httpx.Timeout(self.settings.request_timeout),
            follow_redirects=True,
            max_redirects=self.settings.max_redirects,
        )

    async def fetch(self, request: FetchRequest, policy: SecurityPolicy) -> FetchOutcome:
        """Fetch ``request`` and run the fallback chain for failed GETs.

        Raises UpstreamUnreachable when the first call cannot complete.
        A non-2xx page left after the chain is returned, not raised.
        """

        async with self.create_client() as client:
            result = await self._send(client, request, policy)
            outcome = FetchOutcome(result=result)

            if result.ok or request.method != "GET":
                return outcome

            # 1. Missing page: fall back to the site root
            if result.status_code == 404 and urlparse(result.final_url).path not in ("", "/"):
                await self._retry(client, outcome, root_url(result.final_url), policy)

            # 2. Mobile host or path still failing: try the desktop site
            if outcome.result.status_code >= 400 and is_mobile_url(outcome.result.final_url):
                desktop = desktop_equivalent(outcome.result.final_url)
                if desktop != outcome.result.final_url:
                    await self._retry(client, outcome, desktop, policy)

            if not outcome.ok:
                logger.info(
                    f"Fallback chain exhausted for {request.target_url}: "
                    f"{outcome.result.status_code} after {outcome.attempts} attempts"
                )
            return outcome

    async def _retry(
        self,
        client: httpx.AsyncClient,
        outcome: FetchOutcome,
        url: str,
        policy: SecurityPolicy,
    ):
        outcome.attempts += 1
        logger.debug(f"Fallback attempt {outcome.attempts}: {url}")
        try:
            outcome.result = await self._send(client, FetchRequest(target_url=url), policy)
        except UpstreamUnreachable as e:
            # Keep the previous result so the original error is what gets reported
            logger.warning(f"Fallback fetch of {url} failed, keeping previous result: {e.reason}")

    async def _send(
        self,
        client: httpx.AsyncClient,
        request: FetchRequest,
        policy: SecurityPolicy,
    ) -> FetchResult:
        headers = self.build_headers(request.target_url, policy)
        if request.method == "POST":
            headers["Content-Type"] = request.form_content_type or "application/x-www-form-urlencoded"

        try:
            response = await asyncio.wait_for(
                client.request(
                    request.method,
                    request.target_url,
                    headers=headers,
                    content=request.form_body,
                ),
                timeout=self.settings.upstream_call_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamUnreachable(request.target_url, "Request timed out")
        except httpx.TimeoutException:
            raise UpstreamUnreachable(request.target_url, "Request timed out")
        except httpx.TooManyRedirects:
            raise UpstreamUnreachable(request.target_url, "Too many redirects")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamUnreachable(request.target_url, str(e) or type(e).__name__)

        merged: Dict[str, str] = {}
        for name, value in response.headers.multi_items():
            merged[name.lower()] = value

        logger.info(f"{request.method} {request.target_url} -> {response.status_code} ({response.url})")

        return FetchResult(
            final_url=str(response.url),
            status_code=response.status_code,
            body=response.content,
            headers=merged,
            reason_phrase=response.reason_phrase,
            encoding=response.encoding,
        )
