"""
Accès aux données pour la feature 'cart' (tables carts, cart_items, products).
Les erreurs Supabase remontent en PersistenceError (voir backend.infra.db.execute).
"""
from typing import Any, Dict, List, Optional

from backend.infra.db import execute, first_row, rows

PRODUCT_FIELDS = "id, name, price, image_url, inventory_count, discount_percentage, category_id"
ITEM_FIELDS = f"id, cart_id, product_id, quantity, products({PRODUCT_FIELDS})"

def _with_product(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Renomme la jointure 'products' en 'product' (forme attendue par le panier)."""
    if not item:
        return item
    item = dict(item)
    item["product"] = item.pop("products", None) or item.get("product")
    return item


class CartRepository:
    """Requêtes PostgREST du panier, sur un client Supabase fourni (RLS utilisateur)."""

    def __init__(self, client):
        self.client = client

    # --- carts ---

    def fetch_cart_by_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("carts").select("*").eq("user_id", user_id).limit(1),
            "fetch_cart_by_user",
        )
        return first_row(res)

    def get_cart(self, cart_id: str) -> Optional[Dict[str, Any]]:
        res = execute(self.client.table("carts").select("*").eq("id", cart_id).limit(1), "get_cart")
        return first_row(res)

    def insert_cart(self, user_id: str) -> Dict[str, Any]:
        res = execute(self.client.table("carts").insert({"user_id": user_id}), "insert_cart")
        return first_row(res) or {"user_id": user_id}

    # --- cart_items ---

    def fetch_items(self, cart_id: str) -> List[Dict[str, Any]]:
        res = execute(
            self.client.table("cart_items").select(ITEM_FIELDS).eq("cart_id", cart_id).order("created_at"),
            "fetch_items",
        )
        return [_with_product(it) for it in rows(res)]

    def find_item(self, cart_id: str, product_id: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("cart_items").select("*").eq("cart_id", cart_id).eq("product_id", product_id).limit(1),
            "find_item",
        )
        return first_row(res)

    def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("cart_items").select(ITEM_FIELDS).eq("id", item_id).limit(1),
            "get_item",
        )
        return _with_product(first_row(res))

    def insert_item(self, cart_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        res = execute(
            self.client.table("cart_items").insert({"cart_id": cart_id, "product_id": product_id, "quantity": quantity}),
            "insert_item",
        )
        return first_row(res) or {}

    def update_item_quantity(self, item_id: str, quantity: int) -> Dict[str, Any]:
        res = execute(
            self.client.table("cart_items").update({"quantity": quantity}).eq("id", item_id),
            "update_item_quantity",
        )
        return first_row(res) or {}

    def delete_item(self, item_id: str) -> None:
        execute(self.client.table("cart_items").delete().eq("id", item_id), "delete_item")

    def delete_items_by_cart(self, cart_id: str) -> None:
        execute(self.client.table("cart_items").delete().eq("cart_id", cart_id), "delete_items_by_cart")

    # --- products (lecture seule) ---

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("products").select(PRODUCT_FIELDS).eq("id", product_id).limit(1),
            "get_product",
        )
        return first_row(res)
