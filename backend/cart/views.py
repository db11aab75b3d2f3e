from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.cart.pricing import totals_json
from backend.checkout.shipping import delivery_fee
from backend.context import ShopContext, get_shop_context

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])

class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1)

class UpdateItemRequest(BaseModel):
    quantity: int

# module backend.cart.views
def _cart_view(ctx: ShopContext, cart: Dict[str, Any], delivery_method: str = "standard") -> Dict[str, Any]:
    ctx.remember(cart)
    return {"cart": cart, "totals": totals_json(ctx.carts.totals(cart, delivery_fee(delivery_method)))}

@router.get("")
def get_cart(delivery_method: str = "standard", ctx: ShopContext = Depends(get_shop_context)):
    """Panier courant (créé vide au premier accès) + totaux pour le mode de livraison demandé."""
    return _cart_view(ctx, ctx.cart(), delivery_method)

@router.post("/items")
def add_item(req: AddItemRequest, ctx: ShopContext = Depends(get_shop_context)):
    """Ajoute un produit (incrémente la ligne existante); 409 si le stock est insuffisant."""
    cart = ctx.cart()
    return _cart_view(ctx, ctx.carts.add_item(cart["id"], req.product_id, req.quantity))

@router.patch("/items/{item_id}")
def update_item(item_id: str, req: UpdateItemRequest, ctx: ShopContext = Depends(get_shop_context)):
    """Quantité absolue; 0 retire la ligne."""
    cart = ctx.cart()
    return _cart_view(ctx, ctx.carts.update_item(item_id, req.quantity, cart_id=cart["id"]))

@router.delete("/items/{item_id}")
def remove_item(item_id: str, ctx: ShopContext = Depends(get_shop_context)):
    cart = ctx.cart()
    return _cart_view(ctx, ctx.carts.remove_item(item_id, cart_id=cart["id"]))

@router.delete("")
def clear_cart(ctx: ShopContext = Depends(get_shop_context)):
    cart = ctx.cart()
    return _cart_view(ctx, ctx.carts.clear_cart(cart["id"]))
