"""
Rate limiting des endpoints sensibles (connexion, checkout, paiement direct).

- Redis via fastapi-limiter quand le lifespan l'a initialisé
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev/tests)
- Désactivé proprement si l'init Redis a échoué (app.state.rate_limit_enabled = False)
"""
import hashlib
import os
import time
from typing import Any, Dict
from urllib.parse import urlparse

from fastapi import HTTPException, Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from backend.utils.security import COOKIE_NAME


def rate_limit_key(request: Request) -> str:
    """Identité limitée: token (Bearer puis cookie, hashé) sinon IP, par chemin."""
    auth = request.headers.get("Authorization", "")
    token = auth[7:].strip() if auth.startswith("Bearer ") else request.cookies.get(COOKIE_NAME)
    path = request.url.path
    if token:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{digest}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(request: Request, key: str, times: int, seconds: int) -> None:
    now = time.time()
    store = getattr(request.app.state, "_rl_store", None)
    if store is None:
        store = {}
        request.app.state._rl_store = store
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits


def optional_rate_limit(times: int, seconds: int):
    """Dépendance FastAPI: `dependencies=[Depends(optional_rate_limit(10, 60))]`."""

    async def _identifier(request: Request) -> str:
        return rate_limit_key(request)

    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, rate_limit_key(request), times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return
        if FastAPILimiter.redis is None:
            return
        limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)
        await limiter(request, response)

    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    info: Dict[str, Any] = {
        "enabled": bool(enabled) if enabled is not None else None,
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
    if ready and redis_url:
        p = urlparse(redis_url)
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
