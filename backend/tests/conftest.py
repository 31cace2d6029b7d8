"""
Pytest fixtures for back-office API tests.

Provides test database setup, one user per role, auth headers and a small
product catalog.
"""

from functools import lru_cache

import pytest
from app import create_app
from app.extensions import db
from app.models import Customer, Product, User
from app.services.auth_service import hash_password


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@lru_cache(maxsize=None)
def _password_hash() -> str:
    # bcrypt at cost 12 is slow; every fixture user shares one hash
    return hash_password(PASSWORD)


def _make_user(db_session, name: str, email: str, role: str, is_active: bool = True) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=_password_hash(),
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "Admin", "admin@test.local", "ADMIN")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _make_user(db_session, "Manager", "manager@test.local", "MANAGER")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user(db_session, "Staff", "staff@test.local", "STAFF")


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, PASSWORD))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.email, PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email, PASSWORD))


@pytest.fixture(scope='function')
def product_a(db_session):
    """$20.00 product with 10 in stock."""
    product = Product(sku="PROD-A-001", name="Product A", price_cents=2000, quantity=10, minimum_stock=2)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    """$5.00 product with 3 in stock."""
    product = Product(sku="PROD-B-001", name="Product B", price_cents=500, quantity=3, minimum_stock=5)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Ada Lovelace", email="ada@example.com", phone="555-0100")
    db_session.add(c)
    db_session.commit()
    return c


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
