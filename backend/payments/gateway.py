"""
Cas d'usage 'payments': passerelle vers le prestataire de paiement.

- ensure_remote_customer: un client Stripe actif par utilisateur (course gérée par la contrainte d'unicité)
- create_checkout_session / get_checkout_session: paiement hébergé
- process_direct_payment: débit direct d'un moyen de paiement tokenisé (Stripe ou bac à sable)
- create_payment_intent: PaymentIntent confirmé côté client

Les erreurs Stripe sont traduites ici: carte refusée -> PaymentDeclined, le reste -> GatewayError.
"""
import logging
import re
import time
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import stripe
from pydantic import BaseModel

import backend.config as config
from backend.cart.pricing import to_decimal, to_minor_units
from backend.errors import GatewayError, PaymentDeclined, PersistenceError, ValidationError
from backend.infra.db import is_unique_violation
from . import mock
from . import stripe_client
from .repository import CustomerRepository

logger = logging.getLogger(__name__)

ORDER_LINE_NAME = "African Snakie Order"
CHECKOUT_MODES = ("payment", "subscription")
_TOKEN_RE = re.compile(r"^(pm|tok)_[A-Za-z0-9_]+$")


class PaymentResult(BaseModel):
    status: str
    payment_id: str
    receipt: Optional[str] = None


def idempotency_key(order_ref: str) -> str:
    return f"{order_ref}-{int(time.time() * 1000)}"


class PaymentGateway:

    def __init__(self, customers: CustomerRepository, provider: Optional[str] = None, currency: Optional[str] = None):
        self.customers = customers
        self.provider = (provider or config.PAYMENT_PROVIDER or "stripe").lower()
        self.currency = (currency or config.CURRENCY or "usd").lower()

    # --- clients & abonnements ---

    def ensure_remote_customer(self, user_id: str, email: Optional[str]) -> str:
        """
        Renvoie l'id du client Stripe actif de l'utilisateur, en le créant au besoin.
        Course entre deux requêtes: la contrainte d'unicité désigne le gagnant, le client
        Stripe du perdant est supprimé (best-effort).
        """
        existing = self.customers.get_active_customer(user_id)
        if existing and existing.get("customer_id"):
            return existing["customer_id"]

        customer = self._stripe_call("create_customer", stripe_client.create_customer, email=email, user_id=user_id)
        customer_id = customer.get("id")
        if not customer_id:
            raise GatewayError("Réponse Stripe invalide: client sans identifiant")
        logger.info("payments.customer.created user_id=%s customer_id=%s", user_id, customer_id)

        try:
            self.customers.insert_customer(user_id, customer_id)
        except PersistenceError as e:
            self._discard_customer(customer_id)
            if is_unique_violation(e):
                winner = self.customers.get_active_customer(user_id)
                if winner and winner.get("customer_id"):
                    logger.info("payments.customer.race user_id=%s kept=%s", user_id, winner["customer_id"])
                    return winner["customer_id"]
            raise PersistenceError("Impossible d'enregistrer le client de paiement") from e
        return customer_id

    def ensure_subscription_record(self, customer_id: str) -> Dict[str, Any]:
        """Ligne stripe_subscriptions {status: not_started} si absente (mode=subscription uniquement)."""
        existing = self.customers.get_subscription(customer_id)
        if existing:
            return existing
        try:
            return self.customers.insert_subscription(customer_id, "not_started")
        except PersistenceError as e:
            if is_unique_violation(e):
                return self.customers.get_subscription(customer_id) or {"customer_id": customer_id, "status": "not_started"}
            raise

    def _discard_customer(self, customer_id: str) -> None:
        try:
            stripe_client.delete_customer(customer_id)
        except Exception:
            logger.exception("payments.customer.cleanup failed customer_id=%s", customer_id)

    # --- paiement hébergé ---

    def create_checkout_session(
        self,
        customer_id: str,
        amount_total: Any,
        mode: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Session hébergée à une seule ligne "African Snakie Order" (montant en unités mineures)."""
        if mode not in CHECKOUT_MODES:
            raise ValidationError(f"Mode de paiement invalide: {mode}", fields=["mode"])
        amount = to_minor_units(amount_total)
        if amount <= 0:
            raise ValidationError("Montant invalide", fields=["amount"])
        line_items = [{
            "price_data": {
                "currency": self.currency,
                "product_data": {"name": ORDER_LINE_NAME},
                "unit_amount": amount,
            },
            "quantity": 1,
        }]
        session = self._stripe_call(
            "create_session",
            stripe_client.create_session,
            customer_id=customer_id,
            line_items=line_items,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={str(k): str(v) for k, v in (metadata or {}).items()},
        )
        if not session.get("id") or not session.get("url"):
            raise GatewayError("Réponse Stripe invalide: session sans id/url")
        logger.info("payments.session.created session_id=%s amount=%s", session["id"], amount)
        return {"session_id": session["id"], "url": session["url"]}

    def get_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return self._stripe_call("get_session", stripe_client.get_session, session_id=session_id)

    # --- débit direct ---

    def process_direct_payment(
        self,
        order_ref: str,
        amount: Any,
        payment_method: str,
        currency: Optional[str] = None,
    ) -> PaymentResult:
        """
        Débit direct d'une référence tokenisée (pm_... / tok_...), jamais de données carte brutes.
        Clé d'idempotence: "<order_ref>-<timestamp_ms>".
        """
        if not payment_method or not _TOKEN_RE.match(payment_method):
            raise ValidationError("Moyen de paiement invalide (référence pm_/tok_ attendue)", fields=["payment_method"])
        minor = to_minor_units(amount)
        if minor <= 0:
            raise ValidationError("Montant invalide", fields=["amount"])
        currency = (currency or self.currency).lower()
        key = idempotency_key(order_ref)

        if self.provider == "mock":
            intent = mock.charge(amount=minor, currency=currency, payment_method=payment_method, idempotency_key=key)
        else:
            intent = self._stripe_call(
                "confirm_payment",
                stripe_client.confirm_payment,
                amount=minor,
                currency=currency,
                payment_method=payment_method,
                idempotency_key=key,
                metadata={"order_ref": order_ref},
            )

        status = intent.get("status")
        if status != "succeeded":
            error = intent.get("last_payment_error") or {}
            raise PaymentDeclined(error.get("message") or f"Paiement non abouti (statut: {status})")
        logger.info("payments.direct.succeeded order_ref=%s payment_id=%s", order_ref, intent.get("id"))
        return PaymentResult(
            status=status,
            payment_id=intent["id"],
            receipt=intent.get("latest_charge") or intent["id"],
        )

    def create_payment_intent(self, amount: Any, order_id: str, currency: Optional[str] = None) -> Dict[str, Any]:
        """PaymentIntent à confirmer par le client: {clientSecret, paymentIntentId, amount, currency}."""
        if to_decimal(amount) <= Decimal(0) or not order_id:
            raise ValidationError("Amount and orderId are required", fields=["amount", "orderId"])
        intent = self._stripe_call(
            "create_payment_intent",
            stripe_client.create_payment_intent,
            amount=to_minor_units(amount),
            currency=(currency or self.currency).lower(),
            metadata={"orderId": str(order_id)},
            description=f"{ORDER_LINE_NAME} #{str(order_id)[:8]}",
        )
        return {
            "clientSecret": intent.get("client_secret"),
            "paymentIntentId": intent.get("id"),
            "amount": intent.get("amount"),
            "currency": intent.get("currency"),
        }

    # --- helpers ---

    def _stripe_call(self, action: str, fn: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        try:
            return fn(**kwargs)
        except stripe.CardError as e:
            logger.info("payments.%s declined code=%s", action, getattr(e, "code", None))
            raise PaymentDeclined(e.user_message or str(e)) from e
        except stripe.StripeError as e:
            logger.exception("payments.%s failed", action)
            raise GatewayError(e.user_message or str(e)) from e
