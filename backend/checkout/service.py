"""
Cas d'usage 'checkout': orchestre panier, commande, passerelle de paiement et réconciliation.

Ordre strict: validation -> ligne orders (awaiting_payment) -> passerelle -> finalisation.
Aucune écriture n'a lieu tant que la validation (panier, adresse, livraison) n'est pas passée.
"""
import logging
from typing import Any, Dict, Mapping, Optional

import backend.config as config
from backend.cart.service import CartManager
from backend.errors import InvalidTransition, NotAuthenticated, NotFound, PaymentDeclined, StoreError, ValidationError
from backend.orders.models import OrderStatus, PaymentStatus
from backend.orders.reconciler import OrderReconciler
from backend.orders.repository import OrderRepository
from backend.payments.gateway import CHECKOUT_MODES, PaymentGateway, PaymentResult
from .shipping import delivery_fee, generate_order_ref, validate_shipping
from .state import CheckoutAttempt, CheckoutState

logger = logging.getLogger(__name__)


def default_return_urls(order_ref: str, base_url: Optional[str] = None) -> Dict[str, str]:
    """URLs de retour du paiement hébergé ({CHECKOUT_SESSION_ID} est substitué par Stripe)."""
    base = (base_url or config.BASE_URL).rstrip("/")
    return {
        "success_url": f"{base}{config.CHECKOUT_SUCCESS_PATH}?order_ref={order_ref}&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base}{config.CHECKOUT_CANCEL_PATH}?order_ref={order_ref}",
    }


class CheckoutOrchestrator:

    def __init__(
        self,
        carts: CartManager,
        orders: OrderRepository,
        gateway: PaymentGateway,
        reconciler: OrderReconciler,
    ):
        self.carts = carts
        self.orders = orders
        self.gateway = gateway
        self.reconciler = reconciler

    # --- démarrage ---

    def start(self, user: Mapping[str, Any], shipping: Mapping[str, Any], delivery_method: str) -> Dict[str, Any]:
        """
        Valide le panier et l'adresse puis crée la commande en awaiting_payment/pending.
        Retour: {"attempt", "order", "cart", "totals"}
        """
        user_id = (user or {}).get("id")
        if not user_id:
            raise NotAuthenticated("Connexion requise pour passer commande")

        cart = self.carts.get_or_create_cart(user_id)
        if not cart.get("items"):
            raise ValidationError("Votre panier est vide", fields=["cart"])
        address = validate_shipping(shipping)
        fee = delivery_fee(delivery_method)
        totals = self.carts.totals(cart, fee)

        attempt = CheckoutAttempt()
        attempt.order_ref = generate_order_ref()
        order = self.orders.insert_order({
            "order_ref": attempt.order_ref,
            "user_id": user_id,
            "status": OrderStatus.AWAITING_PAYMENT.value,
            "payment_status": PaymentStatus.PENDING.value,
            "total_amount": str(totals["total"]),
            "shipping_fee": str(totals["shipping"]),
            "shipping_address": address,
            "delivery_method": delivery_method,
        })
        attempt.transition(CheckoutState.AWAITING_PAYMENT)
        logger.info("checkout.started order_ref=%s user_id=%s total=%s", attempt.order_ref, user_id, totals["total"])
        return {"attempt": attempt, "order": order, "cart": cart, "totals": totals}

    def begin(
        self,
        user: Mapping[str, Any],
        shipping: Mapping[str, Any],
        delivery_method: str,
        mode: str = "payment",
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Démarre un paiement hébergé: commande + client Stripe + session.
        Échec passerelle: commande -> failed, panier intact, erreur relancée.
        Retour: {"order_ref", "session_id", "url", "state", "totals"}
        """
        if mode not in CHECKOUT_MODES:
            raise ValidationError(f"Mode de paiement invalide: {mode}", fields=["mode"])
        started = self.start(user, shipping, delivery_method)
        attempt: CheckoutAttempt = started["attempt"]
        order_ref = attempt.order_ref
        urls = default_return_urls(order_ref)

        try:
            email = (user or {}).get("email") or started["order"].get("shipping_address", {}).get("email")
            customer_id = self.gateway.ensure_remote_customer(user["id"], email)
            if mode == "subscription":
                self.gateway.ensure_subscription_record(customer_id)
            session = self.gateway.create_checkout_session(
                customer_id,
                started["totals"]["total"],
                mode,
                success_url or urls["success_url"],
                cancel_url or urls["cancel_url"],
                {"order_ref": order_ref, "user_id": user["id"], "cart_id": started["cart"].get("id")},
            )
        except StoreError as e:
            self._fail(attempt, getattr(e, "code", "gateway_error"))
            raise

        return {
            "order_ref": order_ref,
            "session_id": session["session_id"],
            "url": session["url"],
            "state": attempt.state.value,
            "totals": started["totals"],
        }

    # --- retours de paiement ---

    def confirm_success(self, user: Mapping[str, Any], order_ref: str, session_id: str) -> Dict[str, Any]:
        """
        Confirmation sans webhook: la session Stripe doit être payée et porter cet order_ref.
        Idempotent (un second retour sur la page de succès ne refait rien).
        """
        order = self._owned_order(user, order_ref)
        if order.get("status") == OrderStatus.PAID.value:
            return self.reconciler.finalize_success(None, order_ref, order.get("payment_reference"))
        if not session_id:
            raise ValidationError(fields=["session_id"])

        session = self.gateway.get_checkout_session(session_id)
        metadata = session.get("metadata") or {}
        if metadata.get("order_ref") != order_ref:
            raise ValidationError("La session de paiement ne correspond pas à la commande", fields=["session_id"])
        if session.get("payment_status") != "paid":
            raise InvalidTransition(f"Paiement non confirmé (statut: {session.get('payment_status')})")

        cart_id = metadata.get("cart_id") or self.carts.get_or_create_cart(user["id"]).get("id")
        receipt = session.get("payment_intent") or session.get("id") or session_id
        return self.reconciler.finalize_success(cart_id, order_ref, receipt)

    def cancel(self, user: Mapping[str, Any], order_ref: str) -> Optional[Dict[str, Any]]:
        """Retour 'annuler' du paiement hébergé: commande -> cancelled, panier conservé."""
        if not order_ref:
            return None
        order = self.orders.get_by_ref(order_ref)
        if order and order.get("user_id") != (user or {}).get("id"):
            raise NotFound(f"Commande {order_ref} introuvable")
        return self.reconciler.finalize_failure(order_ref, "cancelled")

    # --- paiement direct ---

    def pay_direct(self, user: Mapping[str, Any], order_ref: str, payment_method: str) -> Dict[str, Any]:
        """
        Débit direct d'une commande en attente (moyen de paiement tokenisé).
        - Panier vide: ValidationError avant tout débit.
        - Carte refusée: commande laissée en attente (nouvel essai possible).
        - Erreur passerelle: commande -> failed puis erreur relancée.
        - Débit accepté: payment_reference/payment_status=completed enregistrés avant la
          finalisation; une commande déjà débitée est finalisée sans nouveau débit.
        """
        order = self._owned_order(user, order_ref)
        attempt = CheckoutAttempt.from_order(order)
        if attempt.state != CheckoutState.AWAITING_PAYMENT:
            raise InvalidTransition(f"Commande {order_ref} non payable (statut: {attempt.state.value})")

        cart = self.carts.get_or_create_cart(user["id"])
        if order.get("payment_reference"):
            logger.info("checkout.pay_direct already charged order_ref=%s", order_ref)
            result = PaymentResult(
                status="succeeded",
                payment_id=order["payment_reference"],
                receipt=order["payment_reference"],
            )
        else:
            if not cart.get("items"):
                raise ValidationError("Votre panier est vide", fields=["cart"])
            try:
                result = self.gateway.process_direct_payment(order_ref, order.get("total_amount"), payment_method)
            except (ValidationError, PaymentDeclined):
                raise
            except StoreError as e:
                self._fail(attempt, getattr(e, "code", "gateway_error"))
                raise
            self._record_charge(order, result)

        finalized = self.reconciler.finalize_success(cart.get("id"), order_ref, result.receipt)
        finalized["payment"] = result.model_dump()
        return finalized

    # --- helpers ---

    def _owned_order(self, user: Mapping[str, Any], order_ref: str) -> Dict[str, Any]:
        user_id = (user or {}).get("id")
        if not user_id:
            raise NotAuthenticated()
        order = self.orders.get_by_ref(order_ref) if order_ref else None
        if not order or order.get("user_id") != user_id:
            raise NotFound(f"Commande {order_ref} introuvable")
        return order

    def _record_charge(self, order: Dict[str, Any], result: PaymentResult) -> None:
        # une commande portant une référence de paiement n'est plus jamais débitée
        try:
            self.orders.update_order(order["id"], {
                "payment_status": PaymentStatus.COMPLETED.value,
                "payment_reference": result.receipt,
            })
        except StoreError:
            logger.exception("checkout.pay_direct charge not recorded order_ref=%s receipt=%s",
                             order.get("order_ref"), result.receipt)
            raise

    def _fail(self, attempt: CheckoutAttempt, reason: str) -> None:
        # l'erreur d'origine reste celle remontée à l'appelant
        try:
            self.reconciler.finalize_failure(attempt.order_ref, reason)
            attempt.transition(CheckoutState.FAILED)
        except StoreError:
            logger.exception("checkout.fail could not mark order failed order_ref=%s", attempt.order_ref)
        logger.info("checkout.failed order_ref=%s reason=%s", attempt.order_ref, reason)
