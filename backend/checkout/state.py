"""
Machine à états d'une tentative de checkout.

COLLECTING_SHIPPING -> AWAITING_PAYMENT -> {PAID | CANCELLED | FAILED}
Les états terminaux sont définitifs; toute autre transition lève InvalidTransition.
"""
from enum import Enum
from typing import Any, Dict, Optional, Set

from backend.errors import InvalidTransition


class CheckoutState(str, Enum):
    COLLECTING_SHIPPING = "collecting_shipping"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"


TRANSITIONS: Dict[CheckoutState, Set[CheckoutState]] = {
    CheckoutState.COLLECTING_SHIPPING: {CheckoutState.AWAITING_PAYMENT, CheckoutState.FAILED},
    CheckoutState.AWAITING_PAYMENT: {CheckoutState.PAID, CheckoutState.CANCELLED, CheckoutState.FAILED},
    CheckoutState.PAID: set(),
    CheckoutState.CANCELLED: set(),
    CheckoutState.FAILED: set(),
}


def can_transition(current: CheckoutState, new: CheckoutState) -> bool:
    return new in TRANSITIONS.get(current, set())


def is_terminal(state: CheckoutState) -> bool:
    return not TRANSITIONS.get(state)


class CheckoutAttempt:
    """Tentative en cours: état courant + order_ref une fois la commande créée."""

    def __init__(self, state: CheckoutState = CheckoutState.COLLECTING_SHIPPING, order_ref: Optional[str] = None):
        self.state = state
        self.order_ref = order_ref

    @classmethod
    def from_order(cls, order: Dict[str, Any]) -> "CheckoutAttempt":
        """Reconstitue la tentative depuis la ligne orders (statut persisté)."""
        try:
            state = CheckoutState(order.get("status"))
        except ValueError:
            raise InvalidTransition(f"Statut de commande inconnu: {order.get('status')}")
        return cls(state=state, order_ref=order.get("order_ref"))

    @property
    def terminal(self) -> bool:
        return is_terminal(self.state)

    def transition(self, new: CheckoutState) -> None:
        if not can_transition(self.state, new):
            raise InvalidTransition(f"Transition interdite: {self.state.value} -> {new.value}")
        self.state = new

    def __repr__(self):
        return f"CheckoutAttempt(state={self.state.value!r}, order_ref={self.order_ref!r})"
