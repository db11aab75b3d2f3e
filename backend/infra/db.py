"""
Helpers PostgREST partagés par les repositories (cart, orders, payments).
- execute: exécute une requête et convertit toute erreur en PersistenceError (loggée)
- rows / first_row: normalisent res.data (liste, dict ou None)
"""
import logging
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from backend.errors import PersistenceError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

def execute(query, action: str):
    """Exécute query.execute(); PersistenceError si le datastore échoue."""
    try:
        return query.execute()
    except Exception as e:
        logger.exception("db.%s failed", action)
        raise PersistenceError(f"Erreur de stockage ({action})") from e

def rows(res) -> List[Dict[str, Any]]:
    data = getattr(res, "data", None) if res is not None else None
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    return []

def first_row(res) -> Optional[Dict[str, Any]]:
    data = rows(res)
    return data[0] if data else None

def is_unique_violation(exc: BaseException) -> bool:
    """Vrai si l'erreur (ou sa cause) est une violation de contrainte d'unicité Postgres."""
    cause = exc.__cause__ if isinstance(exc, PersistenceError) else exc
    if isinstance(cause, APIError) and str(getattr(cause, "code", "")) == UNIQUE_VIOLATION:
        return True
    msg = str(cause or "").lower()
    return UNIQUE_VIOLATION in msg or "duplicate key" in msg
