"""
Pytest fixtures for phone shop backend tests.

Provides a fresh in-memory database per test, the test client, one logged-in
user per role and small factories for suppliers, purchases and sales.
"""

import pytest

from phoneshop import create_app
from phoneshop.extensions import db
from phoneshop.permissions import Role
from phoneshop.services import auth_service, customer_service, supplier_service
from phoneshop.services import purchase_service, sale_service


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def users(app):
    """One active user per role, keyed by role."""
    return {
        role: auth_service.create_user(f"{role.lower()}1", PASSWORD, role, bcrypt_rounds=4)
        for role in (Role.OWNER, Role.MANAGER, Role.CASHIER, Role.TECHNICIAN)
    }


@pytest.fixture(scope='function')
def owner_headers(client, users):
    return auth_headers(get_auth_token(client, users[Role.OWNER].username))


@pytest.fixture(scope='function')
def manager_headers(client, users):
    return auth_headers(get_auth_token(client, users[Role.MANAGER].username))


@pytest.fixture(scope='function')
def cashier_headers(client, users):
    return auth_headers(get_auth_token(client, users[Role.CASHIER].username))


@pytest.fixture(scope='function')
def technician_headers(client, users):
    return auth_headers(get_auth_token(client, users[Role.TECHNICIAN].username))


@pytest.fixture(scope='function')
def customer(app):
    return customer_service.create_customer({"full_name": "Ali Valiyev", "phone_number": "+998901112233"})


@pytest.fixture(scope='function')
def supplier(app):
    return supplier_service.create_supplier({"company_name": "Tech Wholesale", "phone_number": "+998907778899"})


def make_purchase(supplier, prices, paid_amount=None, purchase_date=None):
    """Purchase one phone per price from supplier."""
    payload = {
        "supplier_id": supplier.id,
        "phones": [
            {"brand": "Apple", "model": f"iPhone {i}", "purchase_price": price}
            for i, price in enumerate(prices, start=11)
        ],
    }
    if paid_amount is not None:
        payload["paid_amount"] = paid_amount
    if purchase_date is not None:
        payload["purchase_date"] = purchase_date
    return purchase_service.create_purchase(payload)


def make_sale(phone, price, customer=None, paid_amount=None, sale_date=None):
    """PAY_LATER sale when a customer is given, CASH sale otherwise."""
    payload = {"phone_id": phone.id, "sale_price": price}
    if customer is not None:
        payload["customer_id"] = customer.id
        payload["payment_type"] = "PAY_LATER"
        if paid_amount is not None:
            payload["paid_amount"] = paid_amount
    if sale_date is not None:
        payload["sale_date"] = sale_date
    return sale_service.create_sale(payload)


@pytest.fixture(scope='function')
def stock(supplier):
    """Three in-stock phones from one purchase."""
    return make_purchase(supplier, ["500.00", "600.00", "700.00"]).phones
