"""
Réconciliation de l'état des commandes après le paiement.

- finalize_success: fige les lignes (prix copiés), passe la commande en 'paid', vide le panier.
- finalize_failure: passe une commande en attente à 'cancelled' ou 'failed'; le panier est conservé.
Les deux opérations sont indexées par order_ref et idempotentes.
"""
import logging
from typing import Any, Dict, Optional

from backend.cart.pricing import effective_unit_price, quantize, to_decimal
from backend.cart.service import CartManager
from backend.errors import NotFound, PersistenceError
from .models import OrderStatus, PaymentStatus, TERMINAL_ORDER_STATUSES
from .repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderReconciler:

    def __init__(self, orders: OrderRepository, carts: CartManager):
        self.orders = orders
        self.carts = carts

    def finalize_success(self, cart_id: str, order_ref: str, payment_receipt: Optional[str]) -> Dict[str, Any]:
        """
        Finalise une commande payée. Ordre des écritures:
          1) lignes order_items (sautées si déjà présentes pour cette commande)
          2) commande -> paid / payment_status=completed
          3) vidage du panier (best-effort: l'échec est loggé et signalé, la commande reste valide)
        Retour: {"order", "items", "cart_cleared", "already_finalized"}
        """
        order = self.orders.get_by_ref(order_ref)
        if not order:
            raise NotFound(f"Commande {order_ref} introuvable")

        status = order.get("status")
        if status == OrderStatus.PAID.value:
            logger.info("orders.finalize_success already paid order_ref=%s", order_ref)
            return {"order": order, "items": self.orders.list_items(order["id"]), "cart_cleared": None, "already_finalized": True}

        if status in TERMINAL_ORDER_STATUSES:
            # Commande déjà close (annulée/échouée) mais argent encaissé: seule la correction
            # du statut de paiement est permise.
            logger.warning("orders.finalize_success on terminal order_ref=%s status=%s", order_ref, status)
            if order.get("payment_status") != PaymentStatus.COMPLETED.value:
                order = self.orders.update_order(order["id"], {
                    "payment_status": PaymentStatus.COMPLETED.value,
                    "payment_reference": payment_receipt,
                }) or order
            return {"order": order, "items": self.orders.list_items(order["id"]), "cart_cleared": None, "already_finalized": True}

        items = self.orders.list_items(order["id"])
        if not items:
            items = self._snapshot_cart(order, cart_id)

        order = self.orders.update_order(order["id"], {
            "status": OrderStatus.PAID.value,
            "payment_status": PaymentStatus.COMPLETED.value,
            "payment_reference": payment_receipt,
        }) or {**order, "status": OrderStatus.PAID.value, "payment_status": PaymentStatus.COMPLETED.value}
        logger.info("orders.paid order_ref=%s items=%s receipt=%s", order_ref, len(items), payment_receipt)

        cart_cleared = True
        try:
            self.carts.clear_cart(cart_id)
        except Exception:
            cart_cleared = False
            logger.exception("orders.finalize_success cart clear failed cart_id=%s order_ref=%s", cart_id, order_ref)

        return {"order": order, "items": items, "cart_cleared": cart_cleared, "already_finalized": False}

    def finalize_failure(self, order_ref: str, reason: str) -> Optional[Dict[str, Any]]:
        """
        Clôt une tentative non payée: 'cancelled' si reason == "cancelled", sinon 'failed'.
        - Commande absente: rien à faire (None)
        - Commande déjà terminale: renvoyée telle quelle
        - Débit déjà enregistré (payment_status=completed): renvoyée telle quelle
        """
        order = self.orders.get_by_ref(order_ref)
        if not order:
            logger.info("orders.finalize_failure no order order_ref=%s reason=%s", order_ref, reason)
            return None
        if order.get("status") in TERMINAL_ORDER_STATUSES:
            return order
        if order.get("payment_status") == PaymentStatus.COMPLETED.value:
            logger.warning("orders.finalize_failure ignored, payment captured order_ref=%s reason=%s", order_ref, reason)
            return order
        status = OrderStatus.CANCELLED if reason == "cancelled" else OrderStatus.FAILED
        updated = self.orders.update_order(order["id"], {
            "status": status.value,
            "payment_status": PaymentStatus.FAILED.value,
        })
        logger.info("orders.%s order_ref=%s reason=%s", status.value, order_ref, reason)
        return updated or {**order, "status": status.value, "payment_status": PaymentStatus.FAILED.value}

    def _snapshot_cart(self, order: Dict[str, Any], cart_id: str):
        cart = self.carts.get_cart(cart_id)
        lines = [it for it in cart.get("items") or [] if it.get("product")]
        if not lines:
            raise PersistenceError("Panier vide: impossible de figer les lignes de la commande")

        snapshot = [
            {
                "order_id": order["id"],
                "product_id": it["product_id"],
                "quantity": int(it["quantity"]),
                "price": str(effective_unit_price(it["product"])),
            }
            for it in lines
        ]
        expected = quantize(to_decimal(order.get("total_amount")) - to_decimal(order.get("shipping_fee")))
        actual = quantize(sum((to_decimal(s["price"]) * s["quantity"] for s in snapshot), to_decimal(0)))
        if expected != actual:
            logger.warning("orders.snapshot total drift order_ref=%s expected=%s actual=%s",
                           order.get("order_ref"), expected, actual)
        return self.orders.insert_items(snapshot)
