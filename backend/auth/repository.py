from typing import Dict, Any
from backend.infra.supabase_client import get_supabase

# --- Auth (supabase.auth.*) ---

def auth_sign_in_password(email: str, password: str):
    """Wrapper Supabase Auth: connexion par email/mot de passe (GoTrue)."""
    client = get_supabase()
    return client.auth.sign_in_with_password({"email": email, "password": password})

def auth_sign_out():
    """Wrapper Supabase Auth: révoque la session courante du client partagé."""
    return get_supabase().auth.sign_out()

def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}
