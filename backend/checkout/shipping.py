"""
Formulaire de livraison et grille des frais.
"""
import secrets
import string
import time
from decimal import Decimal
from typing import Any, Dict, Mapping

import backend.config as config
from backend.errors import ValidationError
from backend.orders.models import DeliveryMethod

REQUIRED_SHIPPING_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
)
OPTIONAL_SHIPPING_FIELDS = ("country",)

_BASE36 = string.digits + string.ascii_lowercase


def validate_shipping(shipping: Mapping[str, Any]) -> Dict[str, str]:
    """
    Vérifie les champs requis (valeur vide ou espaces = manquant).
    Retour: adresse nettoyée (champs connus uniquement, valeurs strip()).
    """
    shipping = shipping or {}
    missing = [f for f in REQUIRED_SHIPPING_FIELDS if not str(shipping.get(f) or "").strip()]
    if missing:
        raise ValidationError(fields=missing)
    cleaned = {f: str(shipping[f]).strip() for f in REQUIRED_SHIPPING_FIELDS}
    for f in OPTIONAL_SHIPPING_FIELDS:
        if str(shipping.get(f) or "").strip():
            cleaned[f] = str(shipping[f]).strip()
    return cleaned


def delivery_fee(method: str) -> Decimal:
    """standard -> STANDARD_DELIVERY_FEE, express -> EXPRESS_DELIVERY_FEE."""
    try:
        method = DeliveryMethod(method)
    except ValueError:
        raise ValidationError(f"Mode de livraison inconnu: {method}", fields=["delivery_method"])
    if method is DeliveryMethod.EXPRESS:
        return config.EXPRESS_DELIVERY_FEE
    return config.STANDARD_DELIVERY_FEE


def generate_order_ref() -> str:
    """order_<epoch_ms>_<9 caractères base36>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"order_{int(time.time() * 1000)}_{suffix}"
