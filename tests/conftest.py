"""
Pytest fixtures for the stock ledger test suite.

Provides:
- an in-memory SQLite engine per test (StaticPool, schema from the models)
- a seeded tenant: business, users, supplier, products, payment method,
  customer and an open batch
- helpers to put stock on hand with controlled FIFO timestamps
- a FastAPI TestClient bound to the same engine
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.core.security import create_access_token
from stockledger.db.database import Base, get_db
from stockledger.main import app
from stockledger.models import Batch, Business, Customer, PaymentMethod, Product, Supplier, User
from stockledger.models.enums import BatchStatus, UserRole
from stockledger.services import inventory_ledger

T0 = datetime(2026, 1, 5, 9, 0, 0)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture()
def tenant(db):
    business = Business(code="ACME", name="Acme Trading")
    db.add(business)
    db.flush()

    owner = User(
        email="owner@acme.test",
        username="owner",
        business_id=business.id,
        role=UserRole.BUSINESS_OWNER,
    )
    clerk = User(
        email="clerk@acme.test",
        username="clerk",
        business_id=business.id,
        role=UserRole.EMPLOYEE,
    )
    supplier = Supplier(business_id=business.id, name="Northwind", contact="orders@northwind.test")
    db.add_all([owner, clerk, supplier])
    db.flush()

    product_a = Product(
        business_id=business.id,
        product_code="RICE-5KG",
        name="Rice 5kg",
        supplier_id=supplier.id,
        default_cost_price=Decimal("1.50"),
        default_selling_price=Decimal("5.00"),
    )
    product_b = Product(
        business_id=business.id,
        product_code="OIL-1L",
        name="Cooking oil 1L",
        supplier_id=supplier.id,
        default_selling_price=Decimal("8.00"),
    )
    cash = PaymentMethod(business_id=business.id, name="Cash")
    customer = Customer(business_id=business.id, customer_name="Walk-in Customer")
    batch = Batch(
        business_id=business.id,
        batch_number="B-0001",
        supplier_id=supplier.id,
        received_date=date(2026, 1, 5),
        status=BatchStatus.OPEN,
    )
    db.add_all([product_a, product_b, cash, customer, batch])
    db.flush()

    seeded = SimpleNamespace(
        business_id=business.id,
        owner_id=owner.id,
        clerk_id=clerk.id,
        supplier_id=supplier.id,
        product_a_id=product_a.id,
        product_b_id=product_b.id,
        payment_method_id=cash.id,
        customer_id=customer.id,
        batch_id=batch.id,
    )
    db.commit()
    return seeded


@pytest.fixture()
def stock(db, tenant):
    """Receive lots into the seeded batch, one minute apart so FIFO order is fixed."""
    counter = {"n": 0}

    def _stock(quantity: int, cost: str, product_id=None, batch_id=None):
        received_at = T0 + timedelta(minutes=counter["n"])
        counter["n"] += 1
        return inventory_ledger.receive(
            db,
            product_id=product_id or tenant.product_a_id,
            batch_id=batch_id or tenant.batch_id,
            cost_price=Decimal(cost),
            selling_price=Decimal("5.00"),
            quantity=quantity,
            received_at=received_at,
        )

    return _stock


def auth_headers(user_id, business_id, role: UserRole = UserRole.BUSINESS_OWNER) -> dict[str, str]:
    token = create_access_token(str(user_id), role.value, str(business_id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def client(session_factory, tenant):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def owner_headers(tenant):
    return auth_headers(tenant.owner_id, tenant.business_id)


@pytest.fixture()
def clerk_headers(tenant):
    return auth_headers(tenant.clerk_id, tenant.business_id, UserRole.EMPLOYEE)
