"""
Contexte boutique par requête (remplace les singletons globaux panier/commande/paiement).

get_shop_context est une dépendance FastAPI: elle résout l'utilisateur (Bearer ou cookie),
construit les repositories sur un client Supabase authentifié (RLS) et les services,
puis libère le contexte en fin de requête.
"""
from typing import Any, Dict, Iterator, Optional

from fastapi import Depends

from backend.cart.repository import CartRepository
from backend.cart.service import CartManager
from backend.checkout.service import CheckoutOrchestrator
from backend.infra.supabase_client import get_service_supabase, get_user_supabase
from backend.orders.reconciler import OrderReconciler
from backend.orders.repository import OrderRepository
from backend.payments.gateway import PaymentGateway
from backend.payments.repository import CustomerRepository
from backend.utils.security import require_user


class ShopContext:

    def __init__(
        self,
        user: Dict[str, Any],
        carts: CartManager,
        orders: OrderRepository,
        gateway: PaymentGateway,
    ):
        self.user = user
        self.carts = carts
        self.orders = orders
        self.gateway = gateway
        self.reconciler = OrderReconciler(orders, carts)
        self.checkout = CheckoutOrchestrator(carts, orders, gateway, self.reconciler)
        self._cart: Optional[Dict[str, Any]] = None

    @classmethod
    def for_user(cls, user: Dict[str, Any]) -> "ShopContext":
        client = get_user_supabase(user.get("token") or "")
        return cls(
            user=user,
            carts=CartManager(CartRepository(client)),
            orders=OrderRepository(client),
            gateway=PaymentGateway(CustomerRepository(get_service_supabase())),
        )

    @property
    def user_id(self) -> Optional[str]:
        return (self.user or {}).get("id")

    def cart(self, refresh: bool = False) -> Dict[str, Any]:
        """Vue panier de la requête (chargée une fois, rechargée si refresh)."""
        if self._cart is None or refresh:
            self._cart = self.carts.get_or_create_cart(self.user_id)
        return self._cart

    def remember(self, cart: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Mémorise la vue renvoyée par une mutation (toujours relue depuis le stockage)."""
        if cart is not None:
            self._cart = cart
        return cart

    def close(self) -> None:
        self._cart = None
        self.user = {}


def get_shop_context(user: Dict[str, Any] = Depends(require_user)) -> Iterator[ShopContext]:
    ctx = ShopContext.for_user(user)
    try:
        yield ctx
    finally:
        ctx.close()
