"""FastAPI application entrypoint — lifespan and routes."""

import logging
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from manifest_proxy.api.proxy import router as proxy_router
from manifest_proxy.api.routes import router as api_router
from manifest_proxy.config import Settings, _resolve_env_file, settings
from manifest_proxy.proxy.fetcher import UpstreamFetcher
from manifest_proxy.proxy.rewriter import ManifestRewriter

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("main")


def create_app(
    app_settings: Settings,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the proxy application around one immutable Settings instance.

    ``upstream_transport`` replaces the network layer of the outbound client
    (tests pass an ``httpx.MockTransport``).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        env_path = _resolve_env_file()
        logger.info(
            "Starting manifest proxy (env_file=%s, exists=%s)",
            env_path, env_path.exists(),
        )
        app_settings.log_startup_summary()
        app.state.start_time = time.time()

        fetcher = UpstreamFetcher(app_settings, transport=upstream_transport)
        await fetcher.start()
        app.state.fetcher = fetcher

        logger.info("Server ready")
        yield

        logger.info("Shutting down")
        await fetcher.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="HLS Manifest Proxy",
        lifespan=lifespan,
        docs_url="/api/docs" if app_settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = app_settings
    app.state.rewriter = ManifestRewriter(app_settings.prefix, app_settings.max_recursion)

    app.include_router(api_router)
    app.include_router(proxy_router, prefix=app_settings.prefix)
    return app


app = create_app(settings)
