import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.cart.pricing import totals_json
from backend.context import ShopContext, get_shop_context
from backend.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])
returns_router = APIRouter(tags=["Checkout returns"])

class CheckoutRequest(BaseModel):
    # champs de livraison validés par le service (liste des champs manquants)
    shipping: Dict[str, Any] = Field(default_factory=dict)
    delivery_method: str = "standard"
    payment_flow: Literal["hosted", "direct"] = "hosted"
    mode: str = "payment"

class DirectPaymentRequest(BaseModel):
    payment_method: str

# module backend.checkout.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def start_checkout(req: CheckoutRequest, ctx: ShopContext = Depends(get_shop_context)):
    """
    Démarre une tentative de checkout pour le panier de l'utilisateur.
    - hosted: crée la commande puis la session Stripe, renvoie {order_ref, session_id, url}
    - direct: crée seulement la commande; le paiement suit via POST /{order_ref}/pay
    """
    if req.payment_flow == "direct":
        started = ctx.checkout.start(ctx.user, req.shipping, req.delivery_method)
        return {
            "order_ref": started["attempt"].order_ref,
            "state": started["attempt"].state.value,
            "totals": totals_json(started["totals"]),
        }
    result = ctx.checkout.begin(ctx.user, req.shipping, req.delivery_method, mode=req.mode)
    return {**result, "totals": totals_json(result["totals"])}

@router.post("/{order_ref}/pay", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def pay_order(order_ref: str, req: DirectPaymentRequest, ctx: ShopContext = Depends(get_shop_context)):
    """Débit direct d'une commande en attente; 402 si la carte est refusée."""
    result = ctx.checkout.pay_direct(ctx.user, order_ref, req.payment_method)
    return {
        "order_ref": order_ref,
        "status": result["order"].get("status"),
        "payment": result.get("payment"),
        "cart_cleared": result.get("cart_cleared"),
    }

@returns_router.get("/payment-success")
def payment_success(order_ref: str, session_id: Optional[str] = None, ctx: ShopContext = Depends(get_shop_context)):
    """Retour du paiement hébergé: vérifie la session Stripe puis finalise la commande (idempotent)."""
    result = ctx.checkout.confirm_success(ctx.user, order_ref, session_id or "")
    order = result["order"]
    return {
        "order_ref": order_ref,
        "status": order.get("status"),
        "payment_status": order.get("payment_status"),
        "cart_cleared": result.get("cart_cleared"),
        "already_finalized": result.get("already_finalized"),
    }

@returns_router.get("/payment-cancel")
def payment_cancel(order_ref: Optional[str] = None, ctx: ShopContext = Depends(get_shop_context)):
    """Retour 'annuler': la commande en attente passe à cancelled, le panier est conservé."""
    order = ctx.checkout.cancel(ctx.user, order_ref)
    logger.info("checkout.cancel_return order_ref=%s found=%s", order_ref, bool(order))
    return {"order_ref": order_ref, "status": (order or {}).get("status")}
