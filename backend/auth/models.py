"""
Résultats d'authentification normalisés (réponses Supabase GoTrue -> dicts simples).
Le checkout n'a besoin que de {id, email, role, metadata} et du jeton d'accès.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"


class AuthResponse:
    """Succès + utilisateur/session, ou message d'erreur affichable."""

    __slots__ = ("success", "user", "session", "error")

    def __init__(
        self,
        success: bool,
        user: Optional[Dict[str, Any]] = None,
        session: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        self.success = success
        self.user = user
        self.session = session
        self.error = error

    @classmethod
    def failure(cls, error: str) -> "AuthResponse":
        return cls(False, error=error)

    @property
    def access_token(self) -> Optional[str]:
        return (self.session or {}).get("access_token")


def _field(obj: Any, name: str) -> Any:
    # objets gotrue (attributs) ou dicts selon la version du client
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)

def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    if str((metadata or {}).get("role", "")).lower() == ADMIN_ROLE:
        return ADMIN_ROLE
    return CUSTOMER_ROLE

def build_user_dict(user: Any) -> Dict[str, Any]:
    metadata = _field(user, "user_metadata") or {}
    return {
        "id": _field(user, "id"),
        "email": _field(user, "email"),
        "metadata": metadata,
        "role": determine_role(metadata),
    }

def make_auth_response(res: Any, fallback_error: str = "Identifiants invalides") -> AuthResponse:
    """Réponse sign_in_* -> AuthResponse; pas de jeton d'accès = échec (fallback_error)."""
    session = _field(res, "session")
    token = _field(session, "access_token") if session else None
    if not token:
        return AuthResponse.failure(fallback_error)
    return AuthResponse(
        True,
        user=build_user_dict(_field(res, "user")),
        session={"access_token": token, "expires_at": _field(session, "expires_at")},
    )

def handle_exception(action: str, e: Exception) -> AuthResponse:
    logger.exception("auth.%s failed", action)
    return AuthResponse.failure(f"Erreur {action}: {e}")
