import os
import pytest
from typing import Generator
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

# Pas de Redis en tests: le lifespan désactive fastapi-limiter
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from backend.app import app as fastapi_app
from backend.cart.service import CartManager
from backend.context import ShopContext, get_shop_context
from backend.payments.gateway import PaymentGateway
from backend.utils.security import require_user
from fakes import TEST_USER, FakeCartRepository, FakeCustomerRepository, FakeOrderRepository, FakeStore, FakeStripe

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun accès Supabase réel
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.health.service.get_supabase", lambda: MagicMock())

@pytest.fixture()
def store() -> FakeStore:
    s = FakeStore()
    s.add_product("p-plantain", "25.00", inventory_count=10, name="Plantain chips")
    s.add_product("p-chinchin", "1.00", inventory_count=50, name="Chin chin")
    s.add_product("p-kilishi", "34.00", inventory_count=3, discount_percentage=10, name="Kilishi")
    return s

@pytest.fixture()
def fake_stripe(monkeypatch) -> FakeStripe:
    return FakeStripe().install(monkeypatch)

@pytest.fixture()
def cart_manager(store) -> CartManager:
    return CartManager(FakeCartRepository(store))

@pytest.fixture()
def make_context(store):
    """Fabrique un ShopContext sur les fakes (provider 'stripe' ou 'mock')."""
    def _make(user=None, provider="stripe"):
        carts = CartManager(FakeCartRepository(store))
        gateway = PaymentGateway(FakeCustomerRepository(store), provider=provider, currency="usd")
        return ShopContext(dict(user or TEST_USER), carts, FakeOrderRepository(store), gateway)
    return _make

@pytest.fixture()
def shop(app, make_context):
    """Branche get_shop_context sur les fakes pour les tests de routes."""
    settings = {"provider": "stripe"}

    def _override():
        ctx = make_context(provider=settings["provider"])
        try:
            yield ctx
        finally:
            ctx.close()

    app.dependency_overrides[get_shop_context] = _override
    try:
        yield settings
    finally:
        app.dependency_overrides.pop(get_shop_context, None)
