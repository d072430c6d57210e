"""
Shared fixtures: a throwaway SQLite database per test, catalog and customer
factories, and fakes for the identity provider and the checkout lock.
"""
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fulfillment.api import create_app
from fulfillment.data import models  # noqa: F401
from fulfillment.data.database import Base, get_db
from fulfillment.data.models import CustomerModel, ProductModel
from fulfillment.domain.caller import CallerContext, ExternalIdentity
from fulfillment.domain.enums import Role
from fulfillment.domain.errors import Unauthenticated
from fulfillment.services.catalog_gateway import CatalogGateway
from fulfillment.services.cart_service import CartService
from fulfillment.services.checkout_service import CheckoutService
from fulfillment.services.identity_service import IdentityResolver
from fulfillment.services.order_service import OrderService


class FakeVerifier:
    """Accepts only the tokens it was given."""

    def __init__(self, identities=None):
        self.identities = dict(identities or {})
        self.calls = []

    def verify(self, token):
        self.calls.append(token)
        if token not in self.identities:
            raise Unauthenticated("Token rejected by identity provider")
        return self.identities[token]


class FakeLock:
    """In-memory stand-in for the Redis checkout lock."""

    def __init__(self):
        self.held = {}
        self.released = []

    def acquire_checkout_lock(self, customer_id):
        if customer_id in self.held:
            return None
        token = uuid4().hex
        self.held[customer_id] = token
        return token

    def release_checkout_lock(self, customer_id, token):
        self.released.append((customer_id, token))
        if self.held.get(customer_id) == token:
            del self.held[customer_id]
            return True
        return False


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'fulfillment.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_product(db):
    def _make(name="Widget", price="10.00", stock=5, image=None):
        product = ProductModel(name=name, price=Decimal(price), stock=stock, image=image)
        db.add(product)
        db.commit()
        return product.id

    return _make


@pytest.fixture()
def make_customer(db):
    def _make(external_id=None, role=Role.USER, email=None):
        external_id = external_id or f"ext-{uuid4().hex[:8]}"
        customer = CustomerModel(
            external_id=external_id,
            name=external_id,
            email=email or f"{external_id}@example.com",
            role=role.value,
        )
        db.add(customer)
        db.commit()
        return CallerContext(customer_id=customer.id, role=role)

    return _make


@pytest.fixture()
def alice(make_customer):
    return make_customer("alice")


@pytest.fixture()
def bob(make_customer):
    return make_customer("bob")


@pytest.fixture()
def admin(make_customer):
    return make_customer("root", role=Role.ADMIN)


@pytest.fixture()
def catalog(db):
    return CatalogGateway(db)


@pytest.fixture()
def cart_service(db, catalog):
    return CartService(db=db, catalog=catalog)


@pytest.fixture()
def fake_lock():
    return FakeLock()


@pytest.fixture()
def checkout_service(db, catalog, fake_lock):
    return CheckoutService(db=db, catalog=catalog, lock_service=fake_lock)


@pytest.fixture()
def order_service(db):
    return OrderService(db)


@pytest.fixture()
def verifier():
    return FakeVerifier(
        {
            "alice-token": ExternalIdentity("alice", "alice@example.com", "Alice"),
            "bob-token": ExternalIdentity("bob", "bob@example.com", "Bob"),
            "root-token": ExternalIdentity("root", "root@example.com", "Root"),
        }
    )


@pytest.fixture()
def resolver(verifier):
    return IdentityResolver(verifier, admin_external_ids={"root"})


@pytest.fixture()
def client(session_factory, resolver, fake_lock):
    app = create_app(identity_resolver=resolver, lock_service=fake_lock)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def auth(token):
    return {"Authorization": f"Bearer {token}"}
