"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Les appels restent fins (SDK brut); la traduction des erreurs Stripe en erreurs métier
est faite par backend.payments.gateway.
"""
import stripe
from typing import Any, Dict, Optional

import backend.config as config
from backend.errors import GatewayError

# module backend.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY
    - Sans clé: GatewayError (aucun appel réseau tenté)
    """
    if not config.STRIPE_SECRET_KEY:
        raise GatewayError("Stripe non configuré (STRIPE_SECRET_KEY manquant)")
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject -> dict (to_dict selon la version du SDK)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)

def create_customer(*, email: Optional[str], user_id: str) -> Dict[str, Any]:
    """Crée un client Stripe rattaché à l'utilisateur (metadata.userId)."""
    require_stripe()
    customer = stripe.Customer.create(email=email, metadata={"userId": user_id})
    return _as_dict(customer)

def delete_customer(customer_id: str) -> None:
    require_stripe()
    stripe.Customer.delete(customer_id)

def create_session(
    *,
    customer_id: str,
    line_items: list,
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    - line_items: lignes Stripe (price_data/quantity)
    - mode: "payment" ou "subscription"
    - success_url / cancel_url: URLs de redirection
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    session = stripe.checkout.Session.create(
        customer=customer_id,
        payment_method_types=["card"],
        line_items=line_items,
        mode=mode,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
    )
    return _as_dict(session)

def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "metadata", "payment_intent".
    """
    require_stripe()
    session = stripe.checkout.Session.retrieve(session_id)
    return _as_dict(session)

def create_payment_intent(*, amount: int, currency: str, metadata: Dict[str, Any], description: str = "") -> Dict[str, Any]:
    """PaymentIntent à confirmer côté client (renvoie client_secret)."""
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        metadata=metadata,
        description=description or None,
        automatic_payment_methods={"enabled": True},
    )
    return _as_dict(intent)

def confirm_payment(
    *,
    amount: int,
    currency: str,
    payment_method: str,
    idempotency_key: str,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    """Débit direct confirmé immédiatement (moyen de paiement tokenisé, sans redirection)."""
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        confirm=True,
        automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
        metadata=metadata,
        idempotency_key=idempotency_key,
    )
    return _as_dict(intent)
