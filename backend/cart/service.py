"""
Cas d'usage 'cart': un panier par utilisateur, lignes uniques par produit.

Chaque mutation est suivie d'une relecture complète du panier (pas de fusion optimiste):
la vue renvoyée reflète toujours le stockage.
"""
import logging
from typing import Any, Dict, Optional

from backend.errors import InsufficientInventory, NotAuthenticated, NotFound, ValidationError
from .pricing import compute_totals
from .repository import CartRepository

logger = logging.getLogger(__name__)


class CartManager:
    """Unique chemin lecture-modification-écriture du panier (UI panier et checkout)."""

    def __init__(self, repo: CartRepository):
        self.repo = repo

    # query - lecture

    def get_or_create_cart(self, user_id: Optional[str]) -> Dict[str, Any]:
        """Panier de l'utilisateur avec lignes + produits; créé vide s'il n'existe pas."""
        if not user_id:
            raise NotAuthenticated("Connexion requise pour accéder au panier")
        cart = self.repo.fetch_cart_by_user(user_id)
        if not cart:
            cart = self.repo.insert_cart(user_id)
            logger.info("cart.created user_id=%s cart_id=%s", user_id, cart.get("id"))
        return self._hydrate(cart)

    def get_cart(self, cart_id: str) -> Dict[str, Any]:
        """Relecture d'un panier connu (id) avec ses lignes."""
        return self._refetch(cart_id)

    def totals(self, cart: Dict[str, Any], shipping_fee) -> Dict[str, Any]:
        return compute_totals(cart.get("items") or [], shipping_fee)

    # commands - mutations

    def add_item(self, cart_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        """Incrémente la ligne (cart, produit) existante ou en insère une nouvelle."""
        if int(quantity or 0) < 1:
            raise ValidationError("La quantité doit être au moins 1", fields=["quantity"])
        product = self.repo.get_product(product_id)
        if not product:
            raise ValidationError("Produit introuvable", fields=["product_id"])

        existing = self.repo.find_item(cart_id, product_id)
        new_qty = (int(existing.get("quantity") or 0) if existing else 0) + int(quantity)
        self._check_inventory(product, new_qty)

        if existing:
            self.repo.update_item_quantity(existing["id"], new_qty)
        else:
            self.repo.insert_item(cart_id, product_id, new_qty)
        return self._refetch(cart_id)

    def update_item(self, item_id: str, quantity: int, cart_id: Optional[str] = None) -> Dict[str, Any]:
        """Quantité absolue; quantity < 1 équivaut à remove_item.
        cart_id (optionnel) restreint l'opération au panier de l'appelant.
        """
        item = self.repo.get_item(item_id)
        if not item or (cart_id and item.get("cart_id") != cart_id):
            raise NotFound("Article du panier introuvable")
        if int(quantity or 0) < 1:
            return self.remove_item(item_id, cart_id=item.get("cart_id"))
        self._check_inventory(item.get("product") or {}, int(quantity))
        self.repo.update_item_quantity(item_id, int(quantity))
        return self._refetch(item.get("cart_id"))

    def remove_item(self, item_id: str, cart_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Suppression idempotente: un article absent n'est pas une erreur."""
        item = self.repo.get_item(item_id)
        if item and cart_id and item.get("cart_id") != cart_id:
            raise NotFound("Article du panier introuvable")
        if item:
            self.repo.delete_item(item_id)
        cart_id = cart_id or (item or {}).get("cart_id")
        return self._refetch(cart_id) if cart_id else None

    def clear_cart(self, cart_id: str) -> Dict[str, Any]:
        """Vide toutes les lignes (après commande payée); idempotent."""
        self.repo.delete_items_by_cart(cart_id)
        logger.info("cart.cleared cart_id=%s", cart_id)
        return self._refetch(cart_id)

    # helpers

    def _check_inventory(self, product: Dict[str, Any], quantity: int) -> None:
        available = int(product.get("inventory_count") or 0)
        if quantity > available:
            raise InsufficientInventory(str(product.get("id") or ""), quantity, available)

    def _hydrate(self, cart: Dict[str, Any]) -> Dict[str, Any]:
        view = dict(cart)
        view["items"] = self.repo.fetch_items(cart["id"]) if cart.get("id") else []
        return view

    def _refetch(self, cart_id: str) -> Dict[str, Any]:
        return self._hydrate(self.repo.get_cart(cart_id) or {"id": cart_id})
