"""
Calcul des prix du panier (pur: pas de DB, pas de Stripe).
Montants en Decimal, arrondis au centime (ROUND_HALF_UP).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

def to_decimal(value: Any) -> Decimal:
    """Convertit str|float|int|Decimal en Decimal; 0 si parsing impossible ou None."""
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value))
    except Exception:
        return ZERO

def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)

def discount_pct(product: Dict[str, Any]) -> Decimal:
    """discount_percentage borné à [0, 100]; absent => 0."""
    pct = to_decimal((product or {}).get("discount_percentage"))
    return min(max(pct, Decimal(0)), Decimal(100))

def effective_unit_price(product: Dict[str, Any]) -> Decimal:
    """price × (1 − discount_percentage/100), au centime près."""
    price = to_decimal((product or {}).get("price"))
    return quantize(price * (Decimal(1) - discount_pct(product) / Decimal(100)))

def compute_totals(items: Iterable[Dict[str, Any]], shipping_fee: Decimal) -> Dict[str, Decimal]:
    """
    Totaux d'un panier [{quantity, product:{price, discount_percentage}}, ...]:
    - subtotal = Σ price × qty
    - discount = Σ price × pct/100 × qty, arrondi une seule fois sur la somme
    - shipping = shipping_fee si subtotal > 0, sinon 0
    - total    = subtotal − discount + shipping
    Les lignes sans produit joint sont ignorées.
    """
    subtotal = ZERO
    discount = ZERO
    for item in items or []:
        product = (item or {}).get("product")
        if not product:
            continue
        qty = int(item.get("quantity") or 0)
        price = to_decimal(product.get("price"))
        subtotal += price * qty
        discount += price * discount_pct(product) / Decimal(100) * qty
    subtotal = quantize(subtotal)
    discount = quantize(discount)
    shipping = quantize(to_decimal(shipping_fee)) if subtotal > 0 else ZERO
    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping": shipping,
        "total": subtotal - discount + shipping,
    }

def to_minor_units(amount: Any) -> int:
    """Montant -> unités mineures (centimes), arrondi half-up (ex: 10.005 -> 1001)."""
    return int((to_decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def totals_json(totals: Dict[str, Decimal]) -> Dict[str, str]:
    """Montants en chaînes "0.00" pour les réponses JSON (jamais de float)."""
    return {key: str(value) for key, value in totals.items()}
