"""
Registre central des routers.
- API v1: auth, cart, checkout, orders
- Retours du paiement hébergé: /payment-success, /payment-cancel
- Fonctions serveur: /checkout, /payment-intent
- Health: /health
"""
from fastapi import FastAPI
from backend.auth.views import api_router as auth_api_router
from backend.cart.views import router as cart_router
from backend.checkout.views import router as checkout_router, returns_router as checkout_returns_router
from backend.orders.views import router as orders_router
from backend.functions.views import router as functions_router
from backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(auth_api_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    # Retours Stripe Checkout
    app.include_router(checkout_returns_router)
    # Fonctions (contrats HTTP historiques du front)
    app.include_router(functions_router)
    # Health & monitoring
    app.include_router(health_router)
