"""
Pytest fixtures for poscore backend tests.

Provides an in-memory application per test, one user per role, product
fixtures, bearer-token helpers and the test client.
"""

import pytest

from poscore import create_app
from poscore.extensions import db, product_cache, notification_feed
from poscore.models import Product
from poscore.services.auth_service import Operator, create_user
from poscore.services.cart_service import carts


TEST_PASSWORD = "Password123"


def _reset_live_state():
    product_cache.close()
    product_cache.clear()
    notification_feed.close()
    carts.reset()


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'COMMIT_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        _reset_live_state()
        yield app
        db.session.remove()
        db.drop_all()
    _reset_live_state()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


def _make_user(username, role, name):
    return create_user(
        username=username,
        email=f"{username}@pos.test",
        password=TEST_PASSWORD,
        name=name,
        role=role,
    )


@pytest.fixture
def owner_user(db_session):
    return _make_user("owner", "owner", "Olive Owner")


@pytest.fixture
def cashier_user(db_session):
    return _make_user("cashier", "cashier", "Carla Cashier")


@pytest.fixture
def second_cashier_user(db_session):
    return _make_user("cashier2", "cashier", "Dan Cashier")


@pytest.fixture
def checker_user(db_session):
    return _make_user("checker", "checker", "Chris Checker")


@pytest.fixture
def owner(owner_user):
    return Operator.from_user(owner_user)


@pytest.fixture
def cashier(cashier_user):
    return Operator.from_user(cashier_user)


@pytest.fixture
def second_cashier(second_cashier_user):
    return Operator.from_user(second_cashier_user)


@pytest.fixture
def checker(checker_user):
    return Operator.from_user(checker_user)


def make_product(name="Widget", price_cents=1000, current_stock=10, min_stock=0, barcode=None, category=None):
    product = Product(
        name=name,
        price_cents=price_cents,
        current_stock=current_stock,
        min_stock=min_stock,
        barcode=barcode,
        category=category,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture
def product(db_session):
    return make_product()


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
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


@pytest.fixture
def owner_headers(client, owner_user):
    return auth_headers(get_auth_token(client, owner_user.username))


@pytest.fixture
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))


@pytest.fixture
def checker_headers(client, checker_user):
    return auth_headers(get_auth_token(client, checker_user.username))
