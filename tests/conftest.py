"""Pytest fixtures for grocer tests."""

import mongomock
import pytest
from fastapi.testclient import TestClient

from grocer.config import Settings
from grocer.database import Database
from grocer.main import create_app
from grocer.services import build_services


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        session_secret="test-session-secret",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def database():
    """A connected store handle backed by an in-memory Mongo."""
    db = Database(name="grocer_test", client=mongomock.MongoClient(tz_aware=True))
    db.connect()
    yield db
    db.close()


@pytest.fixture
def services(database, settings):
    return build_services(database, settings)


@pytest.fixture
def client(database, settings):
    app = create_app(settings, database)
    with TestClient(app) as test_client:
        yield test_client


def _account(services, name, email, role):
    result = services.accounts.signup(name, email, "s3cret-pass", role)
    return {
        "id": result["user"]["id"],
        "token": result["token"],
        "headers": {"Authorization": f"Bearer {result['token']}"},
    }


@pytest.fixture
def vendor(services):
    return _account(services, "Green Grocer", "green@grocer.io", "vendor")


@pytest.fixture
def other_vendor(services):
    return _account(services, "Corner Shop", "corner@grocer.io", "vendor")


@pytest.fixture
def customer(services):
    return _account(services, "Ada Shopper", "ada@shopper.io", "customer")


@pytest.fixture
def other_customer(services):
    return _account(services, "Bo Shopper", "bo@shopper.io", "customer")


@pytest.fixture
def make_product(services):
    """Create a product for a vendor; keyword arguments override defaults."""

    def _make(vendor_id, **overrides):
        data = {
            "name": "Milk",
            "category": "Dairy",
            "price": 2.5,
            "stock": 10,
            "imageUrl": "https://img.grocer.io/milk.png",
        }
        data.update(overrides)
        return services.catalog.create_product(vendor_id, data)

    return _make


@pytest.fixture
def make_order(services, make_product):
    """Create a Pending order of one product for a customer and vendor."""

    def _make(customer_id, vendor_id, quantity=2, **product_overrides):
        product = make_product(vendor_id, **product_overrides)
        return services.orders.create_order({
            "userId": customer_id,
            "vendorId": vendor_id,
            "products": [{"productId": product["id"], "quantity": quantity}],
            "totalAmount": product["price"] * quantity,
            "deliveryAddress": {"street": "1 Main St", "city": "Springfield", "postalCode": "12345"},
        })

    return _make
