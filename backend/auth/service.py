from typing import Dict, Any
from backend.auth.models import AuthResponse, make_auth_response, handle_exception, determine_role
from .repository import (
    auth_sign_in_password as sign_in_password,
    auth_sign_out as sign_out,
    get_user_from_access_token as _repo_get_user_from_token,
)

# --- Cas d'usage Auth exposés ---

def login(email: str, password: str) -> AuthResponse:
    """Connexion:
    - Délègue à supabase.auth.sign_in_with_password via repository
    - Normalise la réponse en AuthResponse
    - Message de fallback: identifiants invalides ou email non confirmé
    """
    try:
        email = (email or "").strip()
        res = sign_in_password(email, password)
        return make_auth_response(res, fallback_error="Identifiants invalides ou email non confirmé")
    except Exception as e:
        return handle_exception("sign_in", e)

def logout() -> AuthResponse:
    """Déconnexion côté fournisseur d'identité (best-effort)."""
    try:
        sign_out()
        return AuthResponse(True)
    except Exception as e:
        return handle_exception("sign_out", e)

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, role, token}
    """
    raw = _repo_get_user_from_token(access_token)
    metadata = raw.get("user_metadata") or {}
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": metadata,
        "role": determine_role(metadata),
        "token": access_token,
    }
