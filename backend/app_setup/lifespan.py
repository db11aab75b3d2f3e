"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis) pour les endpoints de checkout/paiement.
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: fallback mémoire si l'init échoue
"""
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

logger = logging.getLogger("uvicorn.error")

def _redis_connection():
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        # dépendance de test uniquement (extra [test])
        from fakeredis.aioredis import FakeRedis
        return FakeRedis(decode_responses=True)
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
    return aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure le rate limiting; un Redis indisponible désactive proprement la limite
    (ou bascule en mémoire avec LOCAL_RATE_LIMIT_FALLBACK=1).
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        yield
        return

    connection = None
    try:
        connection = _redis_connection()
        await FastAPILimiter.init(connection)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        connection = None
        app.state.rate_limit_enabled = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
        state = "falling back to local in-memory" if app.state.rate_limit_enabled else "disabled"
        logger.warning("Rate limiting %s due to init error: %s", state, e)

    yield

    if connection is not None:
        await FastAPILimiter.close()
