from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr

from backend.utils.rate_limit import optional_rate_limit
from backend.utils.security import clear_session_cookie, require_user, set_session_cookie
from .service import login as svc_login, logout as svc_logout

# --- API Router (/api/v1/auth) ---

api_router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"])

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest, response: Response):
    """Point d'entrée de connexion (API JSON).
    - Délègue la vérification des identifiants au service (svc_login)
    - Pose le cookie de session (sb_access) pour les pages de retour du paiement
    - Retourne {access_token, token_type, expires_at, user}
    """
    result = svc_login(req.email, req.password)
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error or "Identifiants invalides")
    set_session_cookie(response, result.access_token)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
        "expires_at": (result.session or {}).get("expires_at"),
        "user": result.user,
    }

@api_router.get("/session")
def api_session(user: Dict[str, Any] = Depends(require_user)):
    """Utilisateur courant (Bearer ou cookie); 401 si la session est absente ou expirée."""
    return {"id": user["id"], "email": user.get("email"), "role": user.get("role"), "metadata": user.get("metadata") or {}}

@api_router.post("/logout")
def api_logout(response: Response):
    """Fin de session: révocation côté fournisseur (best-effort) et suppression du cookie."""
    result = svc_logout()
    clear_session_cookie(response)
    return {"success": result.success}
