"""Configuration via Pydantic Settings, loaded from .env file."""

import json
import logging
import os
from functools import cached_property
from pathlib import Path
from pydantic_settings import BaseSettings

_cfg_logger = logging.getLogger("config")

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
)

# Resolve .env path relative to the project root (parent of manifest_proxy/)
# so it works regardless of the working directory the process is launched from.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _resolve_env_file() -> Path:
    """Return an absolute path to the .env file.

    If ``MANIFEST_PROXY_ENV_FILE`` is set, use it (resolved relative to the
    project root when not absolute).  Otherwise default to
    ``<project_root>/.env``.
    """
    raw = os.environ.get("MANIFEST_PROXY_ENV_FILE", "")
    if raw:
        p = Path(raw)
        return p if p.is_absolute() else _PROJECT_ROOT / p
    return _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    # Logging
    debug: bool = False

    # Manifest handling
    cache_ttl: int = 86400
    max_recursion: int = 5

    # Outbound requests
    user_agents_json: str = ""
    request_timeout_s: float = 30.0
    default_accept: str = "*/*"
    default_accept_language: str = "zh-CN,zh;q=0.9,en;q=0.8"

    # Cache max-age for non-manifest bodies when upstream sends none
    non_manifest_cache_s: int = 3600

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    proxy_prefix: str = "/proxy"

    model_config = {
        "env_file": str(_resolve_env_file()),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "frozen": True,
    }

    @cached_property
    def user_agents(self) -> tuple[str, ...]:
        raw = self.user_agents_json.strip()
        if not raw:
            _cfg_logger.info("USER_AGENTS_JSON not set, using built-in User-Agents")
            return DEFAULT_USER_AGENTS
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            _cfg_logger.warning(
                "USER_AGENTS_JSON is not valid JSON (%s), using built-in User-Agents", exc,
            )
            return DEFAULT_USER_AGENTS
        if (
            not isinstance(parsed, list)
            or not parsed
            or not all(isinstance(ua, str) and ua.strip() for ua in parsed)
        ):
            _cfg_logger.warning(
                "USER_AGENTS_JSON must be a non-empty list of strings, "
                "using built-in User-Agents",
            )
            return DEFAULT_USER_AGENTS
        _cfg_logger.info("Loaded %d User-Agents from USER_AGENTS_JSON", len(parsed))
        return tuple(parsed)

    @cached_property
    def prefix(self) -> str:
        """``proxy_prefix`` normalised to a leading slash and no trailing one."""
        return "/" + self.proxy_prefix.strip("/") if self.proxy_prefix.strip("/") else ""

    def log_startup_summary(self):
        """Log the effective configuration. Called once at startup."""
        _cfg_logger.info(
            "Proxy prefix=%s cache_ttl=%ds max_recursion=%d timeout=%.1fs "
            "user_agents=%d debug=%s",
            self.prefix or "/",
            self.cache_ttl,
            self.max_recursion,
            self.request_timeout_s,
            len(self.user_agents),
            self.debug,
        )


settings = Settings()
