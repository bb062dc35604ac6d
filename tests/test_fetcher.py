import httpx
import pytest

from manifest_proxy.config import Settings
from manifest_proxy.proxy.errors import InvalidTarget, TransportError, UpstreamError
from manifest_proxy.proxy.fetcher import UpstreamFetcher

TARGET = "https://h.example/vod/master.m3u8"


@pytest.fixture
async def fetcher(proxy_settings, upstream):
    f = UpstreamFetcher(proxy_settings, transport=upstream.transport)
    await f.start()
    yield f
    await f.close()


def test_build_headers_defaults(proxy_settings):
    headers = UpstreamFetcher(proxy_settings).build_headers(TARGET, {})
    assert headers == {
        "User-Agent": "TestAgent/1.0",
        "Accept": "*/*",
        "Accept-Language": proxy_settings.default_accept_language,
        "Referer": "https://h.example",
    }


def test_build_headers_forwards_client_values(proxy_settings):
    client = {
        "Accept": "application/x-mpegURL",
        "accept-language": "en-GB",
        "Referer": "https://player.example/watch",
        "Cookie": "session=secret",
    }
    headers = UpstreamFetcher(proxy_settings).build_headers(TARGET, client)
    assert headers["Accept"] == "application/x-mpegURL"
    assert headers["Accept-Language"] == "en-GB"
    assert headers["Referer"] == "https://player.example/watch"
    assert "Cookie" not in headers


def test_build_headers_omits_empty_values():
    settings = Settings(user_agents_json='["UA"]', default_accept_language="")
    headers = UpstreamFetcher(settings).build_headers(TARGET, {})
    assert "Accept-Language" not in headers


def test_user_agent_rotates_over_pool():
    pool = ["UA-%d" % i for i in range(5)]
    settings = Settings(user_agents_json=str(pool).replace("'", '"'))
    fetcher = UpstreamFetcher(settings)
    seen = {fetcher.pick_user_agent() for _ in range(200)}
    assert seen <= set(pool)
    assert len(seen) > 1


@pytest.mark.anyio
async def test_fetch_success(fetcher, upstream):
    upstream.add(TARGET, content=b"#EXTM3U\n", headers={"content-type": "application/vnd.apple.mpegurl"})
    resp = await fetcher.fetch(TARGET, {})
    assert resp.status_code == 200
    assert resp.content_type == "application/vnd.apple.mpegurl"
    assert resp.text == "#EXTM3U\n"
    assert resp.url == TARGET
    assert upstream.requests[0].headers["user-agent"] == "TestAgent/1.0"


@pytest.mark.anyio
async def test_fetch_follows_redirects(fetcher, upstream):
    final = "https://cdn.example/live/index.m3u8"
    upstream.add(TARGET, status_code=302, headers={"location": final})
    upstream.add(final, content=b"#EXTM3U\n")
    resp = await fetcher.fetch(TARGET, {})
    assert resp.status_code == 200
    assert resp.url == final
    assert len(upstream.requests) == 2


@pytest.mark.anyio
async def test_fetch_non_2xx_raises_upstream_error(fetcher, upstream):
    upstream.add(TARGET, status_code=403, content=b"x" * 500)
    with pytest.raises(UpstreamError) as exc_info:
        await fetcher.fetch(TARGET, {})
    err = exc_info.value
    assert err.status_code == 403
    assert len(err.body_excerpt) == 200
    assert TARGET in err.message()


@pytest.mark.anyio
async def test_fetch_timeout_is_transport_error(fetcher, upstream):
    upstream.fail(TARGET, httpx.ReadTimeout("stalled"))
    with pytest.raises(TransportError) as exc_info:
        await fetcher.fetch(TARGET, {})
    assert exc_info.value.status_code == 500


@pytest.mark.anyio
async def test_fetch_connect_error_is_transport_error(fetcher, upstream):
    upstream.fail(TARGET, httpx.ConnectError("name resolution failed"))
    with pytest.raises(TransportError) as exc_info:
        await fetcher.fetch(TARGET, {})
    assert "name resolution failed" in exc_info.value.message()
    assert len(upstream.requests) == 1


@pytest.mark.anyio
async def test_fetch_invalid_url_is_invalid_target(fetcher, upstream):
    with pytest.raises(InvalidTarget):
        await fetcher.fetch("https://h.example:notaport/x", {})
    assert upstream.requests == []
