"""Extracting the upstream URL from an inbound proxy path."""

import logging
import re
from urllib.parse import unquote, urlsplit

from manifest_proxy.proxy.errors import InvalidTarget

logger = logging.getLogger("proxy")

_HTTP_URL = re.compile(r"^https?://[^/?#\s]+", re.IGNORECASE)


def is_http_url(value: str) -> bool:
    return bool(value) and _HTTP_URL.match(value) is not None


def resolve_target(raw: str) -> str:
    """Decode ``raw`` into an absolute http(s) URL or raise InvalidTarget.

    Callers that forgot to percent-encode are tolerated: when the decoded
    form does not look like a URL the undecoded segment is tried as-is.
    """
    if not raw:
        raise InvalidTarget(raw, "empty target")
    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        logger.debug("Target %r is not valid percent-encoded UTF-8", raw)
        decoded = None
    if decoded is not None and is_http_url(decoded):
        return decoded
    if is_http_url(raw):
        logger.debug("Target path was not encoded but looks like a URL: %s", raw)
        return raw
    raise InvalidTarget(raw, "not an absolute http(s) URL")


def target_from_request(raw_path: bytes | str, prefix: str, query: str = "") -> str:
    """Return the still-encoded target segment of an inbound request path.

    ``raw_path`` must be the undecoded ASGI path so ``%2F`` inside the target
    survives routing. ``query`` is the inbound query string; it only belongs
    to the target when the caller passed a plain, unencoded URL; an encoded
    target carries its own query inside the path and the inbound one is dropped.
    """
    if isinstance(raw_path, bytes):
        raw_path = raw_path.decode("latin-1")
    raw_path = raw_path.split("?", 1)[0]
    lead = f"{prefix}/"
    tail = raw_path[len(lead):] if raw_path.startswith(lead) else raw_path.lstrip("/")
    if query and is_http_url(tail):
        tail = f"{tail}?{query}"
    return tail


def get_base_url(url: str) -> str:
    """Directory of ``url`` (last path segment and query dropped), ending in ``/``."""
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError("not an absolute URL")
        parts.port  # raises ValueError on a malformed port
    except ValueError as exc:
        logger.debug("Could not parse base URL %r: %s", url, exc)
        scheme_end = url.find("://")
        last_slash = url.rfind("/")
        if scheme_end != -1 and last_slash > scheme_end + 2:
            return url[: last_slash + 1]
        return url + "/"

    origin = f"{parts.scheme}://{parts.netloc}"
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) <= 1:
        return f"{origin}/"
    return f"{origin}/{'/'.join(segments[:-1])}/"
