"""Service endpoints that are not part of the proxy pipeline."""

import time

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api")


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    cache_ttl: int
    max_recursion: int
    user_agent_count: int


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    settings = request.app.state.settings
    return HealthResponse(
        status="ok",
        uptime_seconds=round(time.time() - request.app.state.start_time, 1),
        cache_ttl=settings.cache_ttl,
        max_recursion=settings.max_recursion,
        user_agent_count=len(settings.user_agents),
    )
