"""
Pytest fixtures for back-office backend tests.

Provides test database setup, an authenticated user, and test client.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import User, Client, Product
from backoffice.services.auth_service import hash_password
from backoffice.services import session_service

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEBT_OVERPAYMENT_POLICY': 'reject',
        'EXPOSE_ERROR_TRACES': False,
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
def absorb_overpayments(app, monkeypatch):
    """Legacy overpayment handling: clamp the debtor, charge the client in full."""
    monkeypatch.setitem(app.config, 'DEBT_OVERPAYMENT_POLICY', 'absorb')


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Create an active back-office user."""
    user = User(
        username="admin",
        email="admin@backoffice.local",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def headers(admin_user):
    """Authorization headers for admin_user."""
    _, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer(db_session):
    """Client with a zero balance."""
    c = Client(full_name="Alisher Karimov", phone="+998901234567", debt=0)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def other_customer(db_session):
    c = Client(full_name="Dilnoza Rahimova", phone="+998907654321", debt=0)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def product(db_session):
    """Product with stock: cost 80, sale 100, quantity 10."""
    p = Product(name="Cement M400", cost_price=80, sale_price=100, quantity=10, min_quantity=2, unit="bag")
    db_session.add(p)
    db_session.commit()
    return p


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
