"""Building client-facing responses: CORS, forwarded headers, caching."""

from fastapi.responses import Response

from manifest_proxy.proxy.errors import ProxyError
from manifest_proxy.proxy.fetcher import UpstreamResponse
from manifest_proxy.proxy.rewriter import hls_content_type

# Upstream response headers passed through verbatim; everything else is dropped.
FORWARD_HEADERS = (
    "content-type",
    "cache-control",
    "expires",
    "last-modified",
    "etag",
    "content-disposition",
    "content-range",
    "accept-ranges",
)

_EXPOSE_HEADERS = "Content-Length, Content-Range, Date, Server, Transfer-Encoding, X-Powered-By"
_ALLOW_METHODS = "GET, HEAD, OPTIONS"
_ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Range, Authorization"
_PREFLIGHT_MAX_AGE = "86400"

_TEXT_PLAIN = "text/plain; charset=utf-8"


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Expose-Headers": _EXPOSE_HEADERS,
    }


def preflight_response() -> Response:
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": _ALLOW_METHODS,
            "Access-Control-Allow-Headers": _ALLOW_HEADERS,
            "Access-Control-Max-Age": _PREFLIGHT_MAX_AGE,
        },
    )


def forwarded_headers(upstream: UpstreamResponse) -> dict[str, str]:
    return {key: upstream.headers[key] for key in FORWARD_HEADERS if key in upstream.headers}


def manifest_response(upstream: UpstreamResponse, rewritten: str, cache_ttl: int) -> Response:
    headers = forwarded_headers(upstream)
    headers.update(cors_headers())
    headers["content-type"] = hls_content_type(upstream.content_type)
    headers["cache-control"] = f"public, max-age={cache_ttl}"
    return Response(content=rewritten.encode("utf-8"), status_code=200, headers=headers)


def passthrough_response(upstream: UpstreamResponse, default_cache_s: int) -> Response:
    headers = forwarded_headers(upstream)
    headers.update(cors_headers())
    if "cache-control" not in headers:
        headers["cache-control"] = f"public, max-age={default_cache_s}"
    return Response(content=upstream.content, status_code=200, headers=headers)


def error_response(exc: ProxyError) -> Response:
    headers = cors_headers()
    headers["content-type"] = _TEXT_PLAIN
    return Response(content=exc.message(), status_code=exc.status_code, headers=headers)
