"""Health check endpoints.

- /health: liveness, always 200
- /healthz: database, redis and qdrant connectivity
"""

import asyncio
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from qdrant_client import AsyncQdrantClient
from sqlalchemy import text

from docchat.config import Settings, get_settings
from docchat.db.engine import get_async_engine

router = APIRouter()


async def check_db(settings: Settings) -> tuple[bool, str]:
    """Run SELECT 1 on the shared async engine."""
    if not settings.database_url:
        return (True, "not_configured")

    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    if not settings.redis_url:
        return (True, "not_configured")

    client = aioredis.from_url(settings.redis_url)
    try:
        await client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


async def check_qdrant(settings: Settings) -> tuple[bool, str]:
    if not settings.qdrant_url:
        return (True, "not_configured")

    client = AsyncQdrantClient(
        url=settings.qdrant_url,
        api_key=settings.qdrant_api_key.get_secret_value() if settings.qdrant_api_key else None,
    )
    try:
        await client.get_collections()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.close()


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | JSONResponse:
    """Readiness check across the configured stores.

    Unconfigured stores report ``not_configured`` and count as healthy.

    Returns:
        200 with component status if every configured store answers,
        503 otherwise
    """
    settings = get_settings()
    checks = {"db": check_db, "redis": check_redis, "qdrant": check_qdrant}

    results = await asyncio.gather(*(check(settings) for check in checks.values()))
    components = {name: message for name, (_, message) in zip(checks, results)}
    healthy = all(ok for ok, _ in results)

    body = {"status": "ok" if healthy else "degraded", "components": components}
    if not healthy:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
