"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, reference data, shoppers, an admin and a
test client.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import User, Product
from app.seed import seed_reference_data
from app.services.auth_service import hash_password
from app.services import token_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret',
        'JWT_SECRET_KEY': 'test-jwt-secret',
        'BCRYPT_ROUNDS': 4,
        'PASSWORD_RESET_RETURN_TOKEN': True,
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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def reference_data(db_session):
    """Loyalty tiers, rewards, shipping options and payment methods."""
    return seed_reference_data()


def _make_user(db_session, name, email, *, is_admin=False):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password("Password123"),
        is_admin=is_admin,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def shopper(db_session):
    """A regular shopper who is not yet a loyalty member."""
    return _make_user(db_session, "Sam Shopper", "sam@example.com")


@pytest.fixture(scope='function')
def other_shopper(db_session):
    return _make_user(db_session, "Olive Other", "olive@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "Ada Admin", "admin@example.com", is_admin=True)


@pytest.fixture(scope='function')
def product(db_session):
    """$20.00 shirt worth 20 points with 5 in stock."""
    product = Product(
        name="Classic Cotton T-Shirt",
        description="Plain tee",
        price_cents=2000,
        category="Clothing",
        loyalty_points=20,
        stock=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    """$50.00 jeans worth 50 points with 10 in stock."""
    product = Product(
        name="Slim Fit Jeans",
        description="Stretch denim",
        price_cents=5000,
        category="Clothing",
        loyalty_points=50,
        stock=10,
        is_sale=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


def _auth_headers(user) -> dict:
    """Helper to create Authorization headers for a user."""
    return {'Authorization': f'Bearer {token_service.issue_access_token(user)}'}


@pytest.fixture(scope='function')
def shopper_headers(shopper):
    return _auth_headers(shopper)


@pytest.fixture(scope='function')
def other_headers(other_shopper):
    return _auth_headers(other_shopper)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return _auth_headers(admin)
