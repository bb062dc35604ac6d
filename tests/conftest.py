"""Test configuration — isolated settings and a scriptable upstream."""

import os

# Keep a developer's .env out of the test run — must be set before app imports
os.environ["MANIFEST_PROXY_ENV_FILE"] = "/nonexistent/.env"

import httpx  # noqa: E402
import pytest  # noqa: E402

from manifest_proxy.config import Settings  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def proxy_settings():
    return Settings(
        user_agents_json='["TestAgent/1.0"]',
        cache_ttl=600,
        max_recursion=5,
        request_timeout_s=5.0,
    )


class Upstream:
    """Routes outbound requests to canned responses and records them."""

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url, status_code=200, content=b"", headers=None):
        self.routes[url] = (status_code, content, headers or {})

    def fail(self, url, exc):
        self.routes[url] = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="no such route")
        if isinstance(route, Exception):
            raise route
        status_code, content, headers = route
        return httpx.Response(status_code, content=content, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def upstream():
    return Upstream()
