"""
Processeur de paiement 'bac à sable' (PAYMENT_PROVIDER=mock).

Accepte les identifiants de test Stripe sans appel réseau:
- pm_card_chargeDeclined / tok_chargeDeclined -> refus (message carte refusée)
- toute autre référence pm_/tok_ bien formée -> succès, reçu "mock_..."
Chaque appel est un nouveau débit; la protection contre le double débit repose sur
la payment_reference enregistrée sur la commande.
"""
import logging
from typing import Any, Dict
from uuid import uuid4

from backend.errors import PaymentDeclined

logger = logging.getLogger(__name__)

DECLINED_METHODS = {"pm_card_chargeDeclined", "tok_chargeDeclined"}
DECLINE_MESSAGE = "Your card was declined. Please try a different payment method."

def charge(*, amount: int, currency: str, payment_method: str, idempotency_key: str) -> Dict[str, Any]:
    """Simule PaymentIntent.create(confirm=True); forme de retour identique à stripe_client.confirm_payment."""
    if payment_method in DECLINED_METHODS:
        logger.info("payments.mock declined key=%s", idempotency_key)
        raise PaymentDeclined(DECLINE_MESSAGE)

    receipt = f"mock_{uuid4().hex[:24]}"
    result = {
        "id": receipt,
        "object": "payment_intent",
        "status": "succeeded",
        "amount": amount,
        "currency": currency,
        "payment_method": payment_method,
        "latest_charge": receipt,
    }
    logger.info("payments.mock charged amount=%s %s key=%s", amount, currency, idempotency_key)
    return result
