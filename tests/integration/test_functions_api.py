import pytest

from backend.functions.views import get_gateway_factory
from backend.payments.gateway import PaymentGateway
from fakes import FakeCustomerRepository

VALID = {"amount": 49.99, "success_url": "https://shop.test/ok", "cancel_url": "https://shop.test/ko"}
AUTH = {"Authorization": "Bearer good-token"}

@pytest.fixture()
def functions(app, store, fake_stripe, monkeypatch):
    """Clé Stripe configurée, identité simulée et passerelle sur les fakes."""
    monkeypatch.setattr("backend.config.STRIPE_SECRET_KEY", "sk_test_123")

    def _get_user(token):
        if token != "good-token":
            raise RuntimeError("invalid JWT")
        return {"id": "u-fn", "email": "fn@example.com"}

    monkeypatch.setattr("backend.functions.views.get_user_from_token", _get_user)
    app.dependency_overrides[get_gateway_factory] = lambda: (
        lambda: PaymentGateway(FakeCustomerRepository(store), provider="stripe", currency="usd")
    )
    try:
        yield fake_stripe
    finally:
        app.dependency_overrides.pop(get_gateway_factory, None)

def test_preflight_ignores_body(client):
    r = client.request("OPTIONS", "/checkout", content=b"{not json")
    assert r.status_code == 200
    assert r.text == "ok"
    assert r.headers["access-control-allow-origin"] == "*"
    assert "POST" in r.headers["access-control-allow-methods"]

@pytest.mark.parametrize("path", ["/checkout", "/payment-intent"])
def test_other_methods_are_405(client, path):
    r = client.get(path)
    assert r.status_code == 405
    assert r.json() == {"error": "Method not allowed"}

def test_missing_stripe_key_is_500(client, monkeypatch):
    monkeypatch.setattr("backend.config.STRIPE_SECRET_KEY", "")
    r = client.post("/checkout", json=VALID, headers=AUTH)
    assert r.status_code == 500
    assert r.json() == {"error": "Server configuration error: Missing Stripe secret key"}

@pytest.mark.parametrize("body,message", [
    (b"", "Invalid JSON in request body"),
    (b"{oops", "Invalid JSON in request body"),
])
def test_checkout_invalid_body(client, functions, body, message):
    r = client.post("/checkout", content=body, headers=dict(AUTH, **{"Content-Type": "application/json"}))
    assert r.status_code == 400
    assert r.json() == {"error": message}

@pytest.mark.parametrize("changes,message", [
    ({"amount": 0}, "Missing or invalid amount parameter"),
    ({"amount": "49.99"}, "Missing or invalid amount parameter"),
    ({"success_url": None}, "Missing or invalid success_url parameter"),
    ({"cancel_url": ""}, "Missing or invalid cancel_url parameter"),
    ({"mode": "setup"}, 'Mode must be either "payment" or "subscription"'),
])
def test_checkout_validation_messages(client, functions, changes, message):
    r = client.post("/checkout", json=dict(VALID, **changes), headers=AUTH)
    assert r.status_code == 400
    assert r.json() == {"error": message}
    assert functions.calls == []

def test_checkout_validates_body_before_auth(client, functions):
    r = client.post("/checkout", json=dict(VALID, amount=-1))
    assert r.status_code == 400

@pytest.mark.parametrize("headers,message", [
    ({}, "Authorization header is required"),
    ({"Authorization": "Bearer expired"}, "Failed to authenticate user"),
])
def test_checkout_auth_errors(client, functions, headers, message):
    r = client.post("/checkout", json=VALID, headers=headers)
    assert r.status_code == 401
    assert r.json() == {"error": message}

def test_checkout_success(client, functions, store):
    r = client.post("/checkout", json=dict(VALID, metadata={"cartId": "c1"}), headers=AUTH)
    assert r.status_code == 200
    data = r.json()
    session = functions.sessions[data["sessionId"]]
    assert data["url"] == session["url"]
    assert session["line_items"][0]["price_data"]["unit_amount"] == 4999
    assert session["metadata"] == {"userId": "u-fn", "cartId": "c1"}
    assert r.headers["access-control-allow-origin"] == "*"
    assert store.customers[0]["user_id"] == "u-fn"

def test_checkout_gateway_error_is_500(client, functions):
    import stripe
    functions.errors["create_session"] = stripe.APIConnectionError("Network down")
    r = client.post("/checkout", json=VALID, headers=AUTH)
    assert r.status_code == 500
    assert "Network down" in r.json()["error"]

def test_payment_intent_requires_auth(client, functions):
    r = client.post("/payment-intent", json={"amount": 10, "orderId": "o1"})
    assert r.status_code == 401
    assert r.json() == {"error": "Authorization header is required"}

def test_payment_intent_missing_fields(client, functions):
    r = client.post("/payment-intent", json={"amount": 10}, headers=AUTH)
    assert r.status_code == 400
    assert r.json() == {"error": "Amount and orderId are required"}

def test_payment_intent_success(client, functions):
    r = client.post("/payment-intent", json={"amount": 25.5, "orderId": "order-123456789"}, headers=AUTH)
    assert r.status_code == 200
    data = r.json()
    assert data["clientSecret"] == "pi_secret_test"
    assert data["amount"] == 2550
    assert data["currency"] == "usd"
    assert functions.intents[-1]["description"] == "African Snakie Order #order-12"
