"""
Taxonomie des erreurs métier du checkout.

Toutes dérivent de HTTPException: les services les lèvent directement (comme le reste du
backend) et le handler global (backend.app_setup.exceptions) les rend en JSON
{"detail", "code"[, "fields"]}. Le `code` reste stable pour le front.
"""
from typing import Iterable, List, Optional
from fastapi import HTTPException


class StoreError(HTTPException):
    """Base des erreurs applicatives (statut HTTP + code stable)."""

    status_code_default = 500
    code = "store_error"
    default_detail = "Erreur interne"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=detail or self.default_detail,
            headers=headers,
        )


class NotAuthenticated(StoreError):
    status_code_default = 401
    code = "not_authenticated"
    default_detail = "Non authentifié"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ValidationError(StoreError):
    """Champs manquants ou invalides (formulaire de livraison, paiement, panier)."""

    status_code_default = 422
    code = "validation_error"
    default_detail = "Données invalides"

    def __init__(self, detail: Optional[str] = None, fields: Iterable[str] = ()):
        self.fields: List[str] = list(fields)
        if detail is None and self.fields:
            detail = "Champs requis manquants: " + ", ".join(self.fields)
        super().__init__(detail)


class InsufficientInventory(StoreError):
    status_code_default = 409
    code = "insufficient_inventory"
    default_detail = "Stock insuffisant"

    def __init__(self, product_id: str = "", requested: int = 0, available: int = 0):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(f"Stock insuffisant pour {product_id}: demandé {requested}, disponible {available}")


class InvalidTransition(StoreError):
    status_code_default = 409
    code = "invalid_transition"
    default_detail = "Transition de checkout invalide"


class NotFound(StoreError):
    status_code_default = 404
    code = "not_found"
    default_detail = "Ressource introuvable"


class GatewayError(StoreError):
    """Réponse non-2xx du prestataire de paiement (message du prestataire conservé)."""

    status_code_default = 502
    code = "gateway_error"
    default_detail = "Le prestataire de paiement est indisponible, réessayez"


class PaymentDeclined(StoreError):
    status_code_default = 402
    code = "payment_declined"
    default_detail = "Paiement refusé"


class PersistenceError(StoreError):
    status_code_default = 503
    code = "persistence_error"
    default_detail = "Erreur de stockage, réessayez"
