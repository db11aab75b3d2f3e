"""
Gestionnaires d'exceptions utilisés par la factory.
- StoreError: JSON {"detail", "code"[, "fields"]} (code stable pour le front)
- 401/403 sur une navigation HTML hors /api/: redirection vers /login avec message
"""
import logging
import urllib.parse

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from backend.errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

def _wants_html(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return "text/html" in accept and not request.url.path.startswith("/api/")

def _login_redirect(exc: HTTPException) -> RedirectResponse:
    detail = str(getattr(exc, "detail", "")) or (
        "Veuillez vous connecter" if exc.status_code == 401 else "Accès interdit"
    )
    return RedirectResponse(url=f"/login?error={urllib.parse.quote_plus(detail)}", status_code=HTTP_303_SEE_OTHER)

def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code in (401, 403) and _wants_html(request):
            return _login_redirect(exc)
        if exc.status_code >= 500:
            logger.warning("store error %s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
        content = {"detail": exc.detail, "code": exc.code}
        if isinstance(exc, ValidationError) and exc.fields:
            content["fields"] = exc.fields
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(HTTPException)
    async def html_redirect_on_auth_errors(request: Request, exc: HTTPException):
        if exc.status_code in (401, 403) and _wants_html(request):
            return _login_redirect(exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
