"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS, TrustedHost et confiance en X-Forwarded-*.
- register_security_middleware: en-têtes de sécurité et CSP (API JSON uniquement).
- register_no_cache_middleware: pas de cache sur le panier, les commandes et les retours de paiement.
- register_function_cors_middleware: préflight et méthodes des fonctions /checkout, /payment-intent.
Notes:
- L'ordre d'ajout est important: le dernier middleware ajouté s'exécute en premier.
  Le middleware des fonctions est ajouté en dernier pour répondre au préflight avant CORSMiddleware.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from backend.config import ALLOWED_HOSTS, COOKIE_SECURE, CORS_ORIGINS, SUPABASE_URL
from backend.functions.views import CORS_HEADERS, FUNCTION_PATHS

NO_CACHE_PREFIXES = ("/api/v1/cart", "/api/v1/orders", "/payment-success", "/payment-cancel")

def register_basic_middlewares(app: FastAPI) -> None:
    """
    - CORSMiddleware: autorise les origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy (x-forwarded-*).
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

def register_security_middleware(app: FastAPI) -> None:
    """
    En-têtes: X-Frame-Options, X-Content-Type-Options, Referrer-Policy, Permissions-Policy,
    HSTS (si cookies secure) et une CSP restreinte au backend + Supabase + Stripe.
    """
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")

        connect = ["'self'", "https://api.stripe.com"]
        if SUPABASE_URL:
            connect.append(SUPABASE_URL.rstrip("/"))
        # Swagger UI (/docs) charge ses assets depuis jsdelivr
        docs_cdn = "https://cdn.jsdelivr.net"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "base-uri 'self'; object-src 'none'; frame-ancestors 'none'; "
            f"img-src 'self' data: https://fastapi.tiangolo.com; "
            f"style-src 'self' 'unsafe-inline' {docs_cdn}; "
            f"script-src 'self' 'unsafe-inline' {docs_cdn} https://js.stripe.com; "
            "frame-src https://js.stripe.com https://checkout.stripe.com; "
            f"connect-src {' '.join(connect)}"
        )
        return response

def register_no_cache_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def no_cache_for_shop_state(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

def register_function_cors_middleware(app: FastAPI) -> None:
    """
    Fonctions /checkout et /payment-intent:
    - OPTIONS: 200 "ok" + en-têtes CORS, sans lire le corps (même JSON invalide)
    - méthode autre que POST: 405 {"error": "Method not allowed"}
    - POST: en-têtes CORS ajoutés à la réponse
    """
    @app.middleware("http")
    async def function_cors(request: Request, call_next):
        if request.url.path.rstrip("/") not in FUNCTION_PATHS:
            return await call_next(request)
        method = request.method.upper()
        if method == "OPTIONS":
            return PlainTextResponse("ok", status_code=200, headers=CORS_HEADERS)
        if method != "POST":
            return JSONResponse({"error": "Method not allowed"}, status_code=405, headers=CORS_HEADERS)
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response
