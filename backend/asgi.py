"""
ASGI entrypoint: `uvicorn backend.asgi:app` (ou gunicorn -k uvicorn.workers.UvicornWorker).
Toute la configuration (routers, middlewares, lifespan) vit dans backend.app_setup.
"""

from backend.app import app

__all__ = ["app"]
