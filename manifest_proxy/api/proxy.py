"""Same-origin proxy for HLS manifests and everything they reference.

Requests look like ``<prefix>/<percent-encoded absolute URL>``. Manifests are
rewritten so every URL in them points back at this route; any other body
(segments, keys, init segments) is passed through byte-for-byte.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from manifest_proxy.api.responses import (
    error_response,
    manifest_response,
    passthrough_response,
    preflight_response,
)
from manifest_proxy.proxy.errors import ProxyError
from manifest_proxy.proxy.rewriter import is_manifest
from manifest_proxy.proxy.target import get_base_url, resolve_target, target_from_request

logger = logging.getLogger("proxy")

router = APIRouter()


@router.api_route("/{target:path}", methods=["GET", "HEAD", "OPTIONS"])
async def proxy(target: str, request: Request) -> Response:
    """Fetch the encoded target and return it, rewriting HLS manifests."""
    if request.method == "OPTIONS":
        return preflight_response()

    settings = request.app.state.settings
    fetcher = request.app.state.fetcher
    rewriter = request.app.state.rewriter

    # The routed ``target`` and ``request.url`` are built from the decoded
    # path, where an encoded ``%3F`` already reads as a query separator; work
    # from the raw path and the scope's query string instead.
    raw_path = request.scope.get("raw_path") or request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    raw_target = target_from_request(raw_path, settings.prefix, query)
    logger.debug("Proxy request %s %s -> %r", request.method, request.url.path, raw_target)

    try:
        url = resolve_target(raw_target)
        upstream = await fetcher.fetch(url, request.headers)
    except ProxyError as exc:
        logger.info("Proxy %s failed with %d: %s", exc.target, exc.status_code, exc)
        return error_response(exc)

    if is_manifest(upstream.content, upstream.content_type):
        logger.debug("Manifest detected, rewriting: %s", url)
        rewritten = rewriter.rewrite(upstream.text, get_base_url(upstream.url))
        return manifest_response(upstream, rewritten, settings.cache_ttl)

    logger.debug("Passing through non-manifest body: %s", url)
    return passthrough_response(upstream, settings.non_manifest_cache_s)
