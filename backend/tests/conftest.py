"""
Pytest fixtures for supplytrack backend tests.

Provides the test database, one user per role, a product factory, and
bearer-token helpers for the HTTP tests.
"""

import pytest
from supplytrack import create_app
from supplytrack.domain import Actor, ProductStatus, Role
from supplytrack.extensions import db
from supplytrack.models import Product, ProductTimelineEntry, User
from supplytrack.services import session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'WRITE_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user(role, username=None, **fields) -> User."""
    counter = {"n": 0}

    def _make(role, username=None, **fields):
        counter["n"] += 1
        role_value = getattr(role, "value", role)
        user = User(
            username=username or f"{role_value}-{counter['n']}",
            role=role_value,
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def users(make_user):
    """One active user per role, keyed by Role."""
    return {role: make_user(role, company_name=f"{role.value.title()} Co") for role in Role}


@pytest.fixture(scope='function')
def actors(users):
    return {role: Actor.from_user(user) for role, user in users.items()}


@pytest.fixture(scope='function')
def make_product(db_session, users):
    """
    Factory: make_product(status=..., owner=..., quantity=..., price_cents=...).

    Inserts the row directly with a single "manufactured" timeline entry so
    tests can start a product at any status.
    """
    counter = {"n": 0}

    def _make(
        status=ProductStatus.MANUFACTURED,
        owner=None,
        quantity=10,
        price_cents=2500,
        category="Fasteners",
        location="Plant 1",
    ):
        counter["n"] += 1
        manufacturer = users[Role.MANUFACTURER]
        owner = owner or manufacturer
        product = Product(
            tracking_number=f"FAS-TEST-{counter['n']:05d}",
            name=f"Hex Bolt M{counter['n']}",
            category=category,
            specifications={"material": "steel"},
            manufacturer_id=manufacturer.id,
            current_owner_id=owner.id,
            current_location=location,
            status=getattr(status, "value", status),
            quantity=quantity,
            price_cents=price_cents,
        )
        product.timeline.append(ProductTimelineEntry(
            position=1,
            status=ProductStatus.MANUFACTURED.value,
            title="Product Manufactured",
            location=location,
            handler_user_id=manufacturer.id,
            description="Product added to inventory",
        ))
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def tokens(users):
    """Plaintext bearer token per role."""
    return {role: session_service.issue_token(user.id) for role, user in users.items()}


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(tokens):
    """Authorization headers per role."""
    return {role: auth_headers(token) for role, token in tokens.items()}


def reload(instance):
    """Re-read a row after an HTTP request committed through another session."""
    db.session.expire_all()
    return db.session.get(type(instance), instance.id)
