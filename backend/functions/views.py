"""
Contrats HTTP des fonctions serveur appelées directement par le front:
- POST /checkout        -> {sessionId, url}
- POST /payment-intent  -> {clientSecret, paymentIntentId, amount, currency}
Erreurs toujours rendues en {"error": "..."}; le préflight CORS (OPTIONS) et les méthodes
non autorisées sont traités en amont par register_function_cors_middleware.
"""
import json
import logging
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

import backend.config as config
from backend.auth.service import get_user_from_token
from backend.errors import NotAuthenticated, PersistenceError, StoreError, ValidationError
from backend.infra.supabase_client import get_service_supabase
from backend.payments.gateway import CHECKOUT_MODES, PaymentGateway
from backend.payments.repository import CustomerRepository
from backend.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Functions"])

FUNCTION_PATHS = ("/checkout", "/payment-intent")
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

def _service_gateway() -> PaymentGateway:
    try:
        client = get_service_supabase()
    except RuntimeError as e:
        raise PersistenceError("Server configuration error: Missing Supabase service key") from e
    return PaymentGateway(CustomerRepository(client))

def get_gateway_factory() -> Callable[[], PaymentGateway]:
    """Construction différée: une erreur de configuration reste rendue en {"error"}."""
    return _service_gateway

def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=CORS_HEADERS)

async def _read_json(request: Request) -> Dict[str, Any]:
    """Corps JSON objet; ValidationError si vide, illisible ou non-objet."""
    raw = await request.body()
    if not raw or not raw.strip():
        raise ValidationError("Request body is empty")
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON in request body")
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON in request body")
    return data

def _is_amount(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0

def _bearer_user(request: Request) -> Dict[str, Any]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise NotAuthenticated("Authorization header is required")
    token = auth_header.replace("Bearer ", "").strip()
    try:
        user = get_user_from_token(token)
    except Exception:
        logger.exception("functions.auth failed")
        raise NotAuthenticated("Failed to authenticate user")
    if not user.get("id"):
        raise NotAuthenticated("User not found")
    return user

def _hosted_session(gateway: PaymentGateway, user, amount, mode, success_url, cancel_url, metadata):
    customer_id = gateway.ensure_remote_customer(user["id"], user.get("email"))
    if mode == "subscription":
        gateway.ensure_subscription_record(customer_id)
    metadata = {"userId": user["id"], **metadata}
    return gateway.create_checkout_session(customer_id, amount, mode, success_url, cancel_url, metadata)

# module backend.functions.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def checkout_function(request: Request, make_gateway: Callable[[], PaymentGateway] = Depends(get_gateway_factory)):
    """
    Session Stripe Checkout pour un montant libre (panier calculé côté front).
    Ordre de validation: configuration, corps, amount, success_url, cancel_url, mode, auth.
    """
    if not config.STRIPE_SECRET_KEY:
        return _error("Server configuration error: Missing Stripe secret key", 500)
    try:
        data = await _read_json(request)
    except ValidationError:
        return _error("Invalid JSON in request body", 400)

    amount = data.get("amount")
    success_url = data.get("success_url")
    cancel_url = data.get("cancel_url")
    mode = data.get("mode") or "payment"
    metadata = data.get("metadata") or {}
    if not _is_amount(amount):
        return _error("Missing or invalid amount parameter", 400)
    if not success_url or not isinstance(success_url, str):
        return _error("Missing or invalid success_url parameter", 400)
    if not cancel_url or not isinstance(cancel_url, str):
        return _error("Missing or invalid cancel_url parameter", 400)
    if mode not in CHECKOUT_MODES:
        return _error('Mode must be either "payment" or "subscription"', 400)
    if not isinstance(metadata, dict):
        metadata = {}

    try:
        user = await run_in_threadpool(_bearer_user, request)
    except NotAuthenticated as e:
        return _error(e.detail, 401)

    try:
        session = await run_in_threadpool(
            _hosted_session, make_gateway(), user, amount, mode, success_url, cancel_url, metadata
        )
    except StoreError as e:
        logger.warning("functions.checkout failed user_id=%s code=%s", user["id"], e.code)
        return _error(str(e.detail), 500)

    return JSONResponse({"sessionId": session["session_id"], "url": session["url"]}, headers=CORS_HEADERS)

@router.post("/payment-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def payment_intent_function(request: Request, make_gateway: Callable[[], PaymentGateway] = Depends(get_gateway_factory)):
    """PaymentIntent pour confirmation côté client: {amount, orderId, currency="usd"}."""
    try:
        await run_in_threadpool(_bearer_user, request)
    except NotAuthenticated as e:
        return _error(e.detail, 401)
    try:
        data = await _read_json(request)
        amount = data.get("amount")
        order_id = data.get("orderId")
        if not amount or not order_id:
            raise ValidationError("Amount and orderId are required")
        intent = await run_in_threadpool(
            make_gateway().create_payment_intent, amount, str(order_id), data.get("currency") or "usd"
        )
    except StoreError as e:
        return _error(str(e.detail), 400)
    return JSONResponse(intent, headers=CORS_HEADERS)
