"""Outbound requests to the upstream video host.

One shared ``httpx.AsyncClient`` is created at startup and closed at
shutdown. Redirects are followed transparently; any non-2xx final status is
raised as UpstreamError and network-level failures as TransportError. No
retries are attempted so an unreliable host never sees duplicated load.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import urlsplit

import httpx

from manifest_proxy.config import Settings
from manifest_proxy.proxy.errors import InvalidTarget, TransportError, UpstreamError

logger = logging.getLogger("fetcher")

_ERROR_EXCERPT_CHARS = 200


@dataclass
class UpstreamResponse:
    url: str
    status_code: int
    content_type: str
    content: bytes
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    encoding: str | None = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class UpstreamFetcher:
    """Fetches targets with rotated User-Agents and client-derived headers."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # -- Lifecycle -----------------------------------------------------------

    async def start(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout_s),
                follow_redirects=True,
                transport=self._transport,
            )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -- Helpers -------------------------------------------------------------

    def pick_user_agent(self) -> str:
        return random.choice(self._settings.user_agents)

    def build_headers(self, target: str, client_headers: Mapping[str, str]) -> dict[str, str]:
        lowered = {k.lower(): v for k, v in client_headers.items()}
        parts = urlsplit(target)
        headers = {
            "User-Agent": self.pick_user_agent(),
            "Accept": lowered.get("accept") or self._settings.default_accept,
            "Accept-Language": lowered.get("accept-language") or self._settings.default_accept_language,
            "Referer": lowered.get("referer") or f"{parts.scheme}://{parts.netloc}",
        }
        return {k: v for k, v in headers.items() if v}

    # -- Public API ----------------------------------------------------------

    async def fetch(self, target: str, client_headers: Mapping[str, str]) -> UpstreamResponse:
        if self._client is None:
            await self.start()

        headers = self.build_headers(target, client_headers)
        logger.debug("Fetching %s with headers %s", target, headers)

        try:
            resp = await self._client.get(target, headers=headers)
        except httpx.InvalidURL as exc:
            raise InvalidTarget(target, str(exc)) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Upstream timed out after %.1fs: %s", self._settings.request_timeout_s, target)
            raise TransportError(target, f"timed out: {exc}") from exc
        except httpx.RequestError as exc:
            logger.warning("Upstream request failed (%s): %s", type(exc).__name__, target)
            raise TransportError(target, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            excerpt = resp.text[:_ERROR_EXCERPT_CHARS]
            logger.warning("Upstream HTTP %s: %s", resp.status_code, target)
            logger.debug("Upstream error body: %s", excerpt)
            raise UpstreamError(target, resp.status_code, excerpt)

        content_type = resp.headers.get("content-type", "")
        logger.debug(
            "Fetched %s (final=%s, content-type=%r, %d bytes)",
            target, resp.url, content_type, len(resp.content),
        )
        return UpstreamResponse(
            url=str(resp.url),
            status_code=resp.status_code,
            content_type=content_type,
            content=resp.content,
            headers=resp.headers,
            encoding=resp.encoding,
        )
