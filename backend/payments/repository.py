"""
Accès aux données pour la feature 'payments' (tables stripe_customers, stripe_subscriptions).
Écrites côté serveur uniquement: le client fourni est le client service-role.
"""
from typing import Any, Dict, Optional

from backend.infra.db import execute, first_row

# module backend.payments.repository
class CustomerRepository:

    def __init__(self, client):
        self.client = client

    def get_active_customer(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Mapping actif (deleted_at IS NULL) de l'utilisateur, ou None."""
        res = execute(
            self.client.table("stripe_customers")
            .select("customer_id")
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
            .limit(1),
            "get_active_customer",
        )
        return first_row(res)

    def insert_customer(self, user_id: str, customer_id: str) -> Dict[str, Any]:
        """Insertion du mapping; une violation d'unicité remonte en PersistenceError (cause APIError 23505)."""
        res = execute(
            self.client.table("stripe_customers").insert({"user_id": user_id, "customer_id": customer_id}),
            "insert_customer",
        )
        return first_row(res) or {"user_id": user_id, "customer_id": customer_id}

    def get_subscription(self, customer_id: str) -> Optional[Dict[str, Any]]:
        res = execute(
            self.client.table("stripe_subscriptions").select("*").eq("customer_id", customer_id).limit(1),
            "get_subscription",
        )
        return first_row(res)

    def insert_subscription(self, customer_id: str, status: str = "not_started") -> Dict[str, Any]:
        res = execute(
            self.client.table("stripe_subscriptions").insert({"customer_id": customer_id, "status": status}),
            "insert_subscription",
        )
        return first_row(res) or {"customer_id": customer_id, "status": status}
