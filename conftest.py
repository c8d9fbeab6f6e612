# Make `import sandbox_proxy` and `import config` resolve to this checkout
# when the tests run without an editable install.
import os
import sys
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest
from fastapi.testclient import TestClient

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from config.settings import Settings  # noqa: E402
from sandbox_proxy.core.app import create_app  # noqa: E402


Handler = Callable[[httpx.Request], httpx.Response]


class FakeUpstream:
    """In-process stand-in for the internet.

    Routes are keyed by ``host + path``; anything unknown answers 404.
    Every request the proxy makes is recorded in ``requests``.
    """

    def __init__(self):
        self.routes: Dict[str, Union[dict, Handler]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        url: str,
        status_code: int = 200,
        content: Union[str, bytes] = b"",
        content_type: Optional[str] = "text/html; charset=utf-8",
        headers: Optional[dict] = None,
    ):
        headers = dict(headers or {})
        if content_type:
            headers["content-type"] = content_type
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.routes[self._key(httpx.URL(url))] = {
            "status_code": status_code,
            "content": content,
            "headers": headers,
        }

    def add_handler(self, url: str, handler: Handler):
        self.routes[self._key(httpx.URL(url))] = handler

    @staticmethod
    def _key(url: httpx.URL) -> str:
        return f"{url.host}{url.path or '/'}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(self._key(request.url))
        if route is None:
            return httpx.Response(404, text="not found", headers={"content-type": "text/html"})
        if callable(route):
            return route(request)
        return httpx.Response(route["status_code"], content=route["content"], headers=route["headers"])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings():
    return Settings(log_file=None, disconnect_poll_interval=0.05)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(settings, upstream):
    app = create_app(settings=settings, upstream_transport=upstream.transport)
    with TestClient(app) as test_client:
        yield test_client
