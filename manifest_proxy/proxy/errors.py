"""Failures raised by the proxy pipeline.

Every error knows the HTTP status it maps to and renders a plain-text
message naming the offending target, so the route can turn any of them into
one terminal response.
"""


class ProxyError(Exception):
    status_code = 500

    def __init__(self, target: str, detail: str = ""):
        self.target = target
        self.detail = detail
        super().__init__(f"{detail} (target={target})" if detail else target)

    def message(self) -> str:
        return f"Proxy request failed: {self.detail}. URL: {self.target}"


class InvalidTarget(ProxyError):
    """The request path does not carry an absolute http(s) URL."""

    status_code = 400

    def message(self) -> str:
        return (
            f"Invalid target URL: {self.target!r}. Pass a percent-encoded "
            "absolute http(s) URL as the path after the proxy prefix"
        )


class UpstreamError(ProxyError):
    """The upstream host answered with a non-2xx status."""

    def __init__(self, target: str, status_code: int, body_excerpt: str = ""):
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        super().__init__(target, f"upstream returned HTTP {status_code}")

    def message(self) -> str:
        if self.status_code == 404:
            return f"Target resource not found (404 Not Found). URL: {self.target}"
        if self.status_code >= 500:
            return f"Upstream server error ({self.status_code}). URL: {self.target}"
        return f"Upstream request rejected (HTTP {self.status_code}). URL: {self.target}"


class TransportError(ProxyError):
    """The upstream host could not be reached at all (DNS, TLS, timeout...)."""

    status_code = 500

    def message(self) -> str:
        return f"Could not reach upstream ({self.detail}). URL: {self.target}"
