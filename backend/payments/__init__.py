"""
Module 'payments' (feature-first): point d'entrée public.
Réunit la passerelle (Stripe ou bac à sable), le client Stripe et le repository des clients.
"""

from .gateway import PaymentGateway, PaymentResult, idempotency_key, ORDER_LINE_NAME, CHECKOUT_MODES
from .repository import CustomerRepository
from .stripe_client import require_stripe, create_session, get_session

__all__ = [
    # gateway
    "PaymentGateway",
    "PaymentResult",
    "idempotency_key",
    "ORDER_LINE_NAME",
    "CHECKOUT_MODES",
    # repository
    "CustomerRepository",
    # stripe
    "require_stripe",
    "create_session",
    "get_session",
]
