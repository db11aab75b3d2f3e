"""
Accès aux données pour la feature 'orders' (tables orders, order_items).
"""
from typing import Any, Dict, List, Optional

from backend.infra.db import execute, first_row, rows

ORDER_WITH_ITEMS = "*, order_items(*, products(id, name, image_url))"


class OrderRepository:

    def __init__(self, client):
        self.client = client

    def insert_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        res = execute(self.client.table("orders").insert(order), "insert_order")
        return first_row(res) or dict(order)

    def get_by_ref(self, order_ref: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("orders").select("*").eq("order_ref", order_ref).limit(1),
            "get_order_by_ref",
        )
        return first_row(res)

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        res = execute(self.client.table("orders").update(changes).eq("id", order_id), "update_order")
        return first_row(res) or {}

    def insert_items(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insertion groupée des lignes (un seul aller-retour)."""
        if not items:
            return []
        res = execute(self.client.table("order_items").insert(items), "insert_order_items")
        return rows(res)

    def list_items(self, order_id: str) -> List[Dict[str, Any]]:
        res = execute(
            self.client.table("order_items").select("*").eq("order_id", order_id),
            "list_order_items",
        )
        return rows(res)

    def list_user_orders(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Historique utilisateur avec lignes + produits, du plus récent au plus ancien."""
        res = execute(
            self.client.table("orders")
            .select(ORDER_WITH_ITEMS)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit),
            "list_user_orders",
        )
        return rows(res)

    def get_user_order(self, user_id: str, order_ref: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("orders")
            .select(ORDER_WITH_ITEMS)
            .eq("user_id", user_id)
            .eq("order_ref", order_ref)
            .limit(1),
            "get_user_order",
        )
        return first_row(res)
