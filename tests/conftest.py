"""
Pytest configuration and shared fixtures for storefront tests.
"""
import pytest
from fastapi.testclient import TestClient

from storefront.models.orders import CustomerInfo
from storefront.models.pricing import CartItemKind, DEFAULT_PRICING_SETTINGS
from storefront.services.order_notification_service import (
    OrderNotificationService,
    RecordingNotificationSink,
)
from storefront.services.order_service import OrderLifecycleController
from storefront.services.order_store import InMemoryOrderStore
from storefront.services.payment_gateway import SimulatedPaymentGateway, no_delay
from storefront.services.pricing_engine import build_cart_line


@pytest.fixture
def pricing():
    return DEFAULT_PRICING_SETTINGS


@pytest.fixture
def customer():
    return CustomerInfo(email="amina@example.com", name="Amina Benali")


@pytest.fixture
def yearly_cart(pricing):
    """12 months of subscription: 4000 x 12 with the 20% duration tier."""
    return [build_cart_line(CartItemKind.SUBSCRIPTION, 12, pricing)]


@pytest.fixture
def gateway():
    """Simulated gateway that never sleeps."""
    return SimulatedPaymentGateway(delay=no_delay, clock=lambda: 1_700_000_000.0)


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def controller(store, gateway, sink):
    return OrderLifecycleController(
        store=store,
        gateway=gateway,
        notifier=OrderNotificationService(sink=sink),
        timeout_seconds=5,
    )


@pytest.fixture
def client(controller, pricing, monkeypatch):
    """TestClient for storefront.server:app wired to the in-memory controller."""
    monkeypatch.setattr("storefront.config.MONGO_URL", "")
    from storefront.server import app

    with TestClient(app) as test_client:
        app.state.order_controller = controller
        app.state.pricing_settings = pricing
        yield test_client