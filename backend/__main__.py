"""
Point d'entrée principal pour le backend FastAPI.

Usage:
    python -m backend

Variables d'environnement:
- PORT: port d'écoute (par défaut 8000)
- UVICORN_RELOAD: active le reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn et des loggers backend.* (ex: "info", "debug")
"""
import logging
import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    reload_flag = os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")
    log_level = os.environ.get("LOG_LEVEL", "info")
    # loggers applicatifs (backend.*): même niveau que uvicorn
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s:     %(name)s - %(message)s")
    uvicorn.run(
        "backend.asgi:app",
        host="0.0.0.0",
        port=port,
        reload=reload_flag,
        log_level=log_level,
    )
