from fastapi import Request, Depends
from fastapi.responses import Response
from typing import Optional, Dict, Any
from backend.config import COOKIE_SECURE
from backend.errors import NotAuthenticated

COOKIE_NAME = "sb_access"

def set_session_cookie(response: Response, access_token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=60 * 60,
        path="/",
    )

def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")

def bearer_token(request: Request, allow_cookie: bool = True) -> Optional[str]:
    """Token d'accès: priorité à l'en-tête Authorization: Bearer, fallback cookie sb_access."""
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else ""
    if not token and allow_cookie:
        token = request.cookies.get(COOKIE_NAME) or ""
    return token or None

def user_from_token(token: Optional[str]) -> Dict[str, Any]:
    """
    Résout l'utilisateur auprès du fournisseur d'identité.
    - NotAuthenticated si token absent, invalide ou sans id
    """
    if not token:
        raise NotAuthenticated()
    try:
        from backend.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
    except Exception:
        raise NotAuthenticated("Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise NotAuthenticated("Session expirée, veuillez vous connecter")
    return user

def get_current_user(request: Request) -> Dict[str, Any]:
    return user_from_token(bearer_token(request))

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
