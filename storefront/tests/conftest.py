"""
Shared fixtures: in-memory SQLite, in-process rate-limit/CSRF stores, and
pre-authenticated customer/admin headers.
"""
import os

# Settings are read at import time, so the environment must be set first
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CSRF_ENABLED"] = "true"
os.environ["SEED_DEMO"] = "false"

import pytest
from fastapi.testclient import TestClient

from storefront.core.csrf import csrf_protect
from storefront.core.rate_limit import reset_rate_limits
from storefront.core.security import create_access_token, get_password_hash
from storefront.db.models import AdminRole, AdminUser, Customer, Product
from storefront.db.session import Base, SessionLocal, engine
from storefront.main import app

CUSTOMER_PASSWORD = "buyerpass123"
ADMIN_PASSWORD = "adminpass123"


# ============= FIXTURES =============

@pytest.fixture(autouse=True)
def _schema():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _perimeter_state():
    """Rate-limit windows and CSRF tokens must not leak between tests."""
    reset_rate_limits()
    csrf_protect.store.clear()
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def customer(db_session):
    customer = Customer(
        name="Jane Buyer",
        email="jane@acme-industrial.com",
        hashed_password=get_password_hash(CUSTOMER_PASSWORD),
        company="Acme Industrial",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def customer_headers(customer):
    token = create_access_token({"sub": customer.id, "email": customer.email, "role": "customer"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db_session):
    admin = AdminUser(
        username="ops",
        hashed_password=get_password_hash(ADMIN_PASSWORD),
        role=AdminRole.ADMIN.value,
    )
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture
def admin_headers(admin):
    token = create_access_token({"sub": admin.id, "username": admin.username, "role": admin.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def with_csrf(client):
    """Return ``headers`` plus a CSRF token issued for the same session."""
    def _with_csrf(headers=None):
        headers = dict(headers or {})
        response = client.get("/api/csrf-token", headers=headers)
        assert response.status_code == 200
        headers["X-CSRF-Token"] = response.json()["csrfToken"]
        return headers
    return _with_csrf


@pytest.fixture
def product(db_session):
    product = Product(
        id="p1",
        sku="LEI-M12-A-5P-M",
        name="M12 Connector A-coded 5-pin male",
        category="Connectors",
        in_stock=True,
        stock_quantity=150,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def order_payload():
    """Factory for a valid RFQ body (camelCase, as the storefront sends it)."""
    def _payload(product_id="p1", sku="LEI-M12-A-5P-M", quantity=10, **overrides):
        body = {
            "companyName": "Acme Industrial",
            "contactName": "Jane Buyer",
            "email": "jane@acme-industrial.com",
            "phone": "+49 30 1234567",
            "companyAddress": "Industriestrasse 1, Berlin",
            "items": [{
                "productId": product_id,
                "sku": sku,
                "name": "M12 Connector A-coded 5-pin male",
                "quantity": quantity,
            }],
        }
        body.update(overrides)
        return body
    return _payload
