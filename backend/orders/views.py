from fastapi import APIRouter, Depends

from backend.context import ShopContext, get_shop_context
from backend.errors import NotFound

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

# module backend.orders.views
@router.get("")
def list_orders(limit: int = 50, ctx: ShopContext = Depends(get_shop_context)):
    """Historique des commandes de l'utilisateur (plus récentes d'abord), lignes et produits inclus."""
    return {"orders": ctx.orders.list_user_orders(ctx.user_id, limit=max(1, min(limit, 100)))}

@router.get("/{order_ref}")
def get_order(order_ref: str, ctx: ShopContext = Depends(get_shop_context)):
    order = ctx.orders.get_user_order(ctx.user_id, order_ref)
    if not order:
        raise NotFound(f"Commande {order_ref} introuvable")
    return order
