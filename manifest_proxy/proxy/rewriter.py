"""HLS manifest detection and URL rewriting.

Every URL a manifest hands to the player is resolved against the manifest's
base URL and replaced with a proxied URL, so sub-manifests, segments, keys
and init segments are all requested back through this service. Nested
manifests are never fetched here: the player requests the proxied URL and
that request runs through the pipeline on its own.

Known gap: a ``URI="..."`` attribute written inline on an
``#EXT-X-STREAM-INF`` line is left untouched.
"""

import logging
import re
from enum import Enum
from urllib.parse import quote, urljoin, urlsplit

from manifest_proxy.proxy.target import is_http_url

logger = logging.getLogger("rewriter")

HLS_CONTENT_TYPES = (
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
)
DEFAULT_HLS_CONTENT_TYPE = HLS_CONTENT_TYPES[0]

_MANIFEST_MARKER = "#EXTM3U"
_URI_ATTR = re.compile(r'URI="([^"]+)"')
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class LineKind(str, Enum):
    VARIANT_INFO = "variant_info"
    KEY = "key"
    MAP = "map"
    SEGMENT_INFO = "segment_info"
    BYTE_RANGE = "byte_range"
    URI = "uri"
    OPAQUE = "opaque"


_TAG_KINDS = (
    ("#EXT-X-STREAM-INF:", LineKind.VARIANT_INFO),
    ("#EXT-X-KEY:", LineKind.KEY),
    ("#EXT-X-MAP:", LineKind.MAP),
    ("#EXTINF:", LineKind.SEGMENT_INFO),
    ("#EXT-X-BYTERANGE:", LineKind.BYTE_RANGE),
)


def classify_line(line: str) -> LineKind:
    """Tag an already-stripped manifest line by its prefix."""
    for prefix, kind in _TAG_KINDS:
        if line.startswith(prefix):
            return kind
    if line and not line.startswith("#"):
        return LineKind.URI
    return LineKind.OPAQUE


def is_manifest(content: bytes | str, content_type: str | None) -> bool:
    ctype = (content_type or "").lower()
    if any(token in ctype for token in HLS_CONTENT_TYPES):
        return True
    if not content:
        return False
    if isinstance(content, bytes):
        head = content[:1024].lstrip()
        if head.startswith(b"\xef\xbb\xbf"):
            head = head[3:].lstrip()
        return head.startswith(_MANIFEST_MARKER.encode())
    return content.lstrip("\ufeff \t\r\n").startswith(_MANIFEST_MARKER)


def hls_content_type(content_type: str | None) -> str:
    """Upstream content-type when it is an HLS type, else the default one."""
    if content_type and any(token in content_type.lower() for token in HLS_CONTENT_TYPES):
        return content_type
    return DEFAULT_HLS_CONTENT_TYPE


def resolve_url(base: str, relative: str) -> str:
    if not relative:
        return ""
    if is_http_url(relative):
        return relative
    if not base:
        return relative
    try:
        return urljoin(base, relative)
    except ValueError as exc:
        logger.debug("urljoin(%r, %r) failed: %s", base, relative, exc)
    if relative.startswith("/"):
        scheme_end = base.find("://")
        if scheme_end == -1:
            return relative
        path_start = base.find("/", scheme_end + 3)
        origin = base if path_start == -1 else base[:path_start]
        return origin + relative
    return base[: base.rfind("/") + 1] + relative


def _looks_like_manifest_url(url: str) -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url.split("?", 1)[0]
    return path.lower().endswith((".m3u8", ".m3u"))


def rewrite_url_to_proxy(url: str, prefix: str) -> str:
    if not url:
        return ""
    return f"{prefix}/{quote(url, safe='')}"


class ManifestRewriter:
    def __init__(self, proxy_prefix: str, max_recursion: int):
        self.proxy_prefix = proxy_prefix
        self.max_recursion = max_recursion

    def proxied(self, url: str) -> str:
        return rewrite_url_to_proxy(url, self.proxy_prefix)

    def _rewrite_uri_attribute(self, line: str, base_url: str) -> str:
        def _sub(match: re.Match) -> str:
            absolute = resolve_url(base_url, match.group(1))
            logger.debug("URI attribute %r -> %s", match.group(1), absolute)
            return f'URI="{self.proxied(absolute)}"'

        return _URI_ATTR.sub(_sub, line, count=1)

    def rewrite(self, text: str, base_url: str, depth: int = 0) -> str:
        if depth > self.max_recursion:
            logger.debug(
                "Recursion limit %d reached at depth %d, returning manifest as-is: %s",
                self.max_recursion, depth, base_url,
            )
            return text

        logger.debug("Rewriting manifest (depth %d) against %s", depth, base_url)
        out = []
        is_master = False
        for raw_line in _LINE_BREAK.split(text):
            line = raw_line.strip()
            kind = classify_line(line)
            if kind is LineKind.VARIANT_INFO:
                is_master = True
                out.append(line)
            elif kind in (LineKind.KEY, LineKind.MAP):
                out.append(self._rewrite_uri_attribute(line, base_url))
            elif kind is LineKind.URI:
                absolute = resolve_url(base_url, line)
                if is_master or _looks_like_manifest_url(absolute):
                    logger.debug("Nested manifest %s deferred to client request", absolute)
                out.append(self.proxied(absolute))
            else:
                # SEGMENT_INFO, BYTE_RANGE and OPAQUE carry no URL.
                out.append(line)
        return "\n".join(out)
