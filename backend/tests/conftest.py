"""
Pytest fixtures for the dry-cleaning admin backend tests.

Provides an in-memory database, one user per role with ready-made auth
headers, and small catalog/inventory builders.
"""

from decimal import Decimal

import pytest
from dryclean import create_app
from dryclean.extensions import db
from dryclean.models import (
    User,
    Customer,
    Service,
    ServiceConsumable,
    ClothingType,
    ClothingTypePrice,
    InventoryItem,
)
from dryclean.permissions import ROLE_ADMIN, ROLE_MODERATOR
from dryclean.services.auth_service import hash_password
from dryclean.services import session_service


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'WHATSAPP_API_URL': None,
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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


def _make_user(db_session, email, role, password_hash):
    user = User(email=email, password_hash=password_hash, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, "admin@example.com", ROLE_ADMIN, password_hash)


@pytest.fixture(scope='function')
def moderator_user(db_session, password_hash):
    return _make_user(db_session, "moderator@example.com", ROLE_MODERATOR, password_hash)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.get_json().get('token')
    return None


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    _session, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def moderator_headers(moderator_user):
    _session, token = session_service.create_session(moderator_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Amina Juma", phone="0712345678")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def detergent(db_session):
    item = InventoryItem(name="Detergent", quantity=Decimal("10.000"), unit="L", reorder_level=Decimal("2.000"))
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def catalog(db_session, detergent):
    """
    Washing (5000, uses 0.5 L detergent per unit), Ironing (3000),
    Shirt (no overrides), Suit (washing override 8000, ironing free).
    """
    washing = Service(name="Washing", base_price=5000)
    washing.consumables.append(ServiceConsumable(inventory_item_id=detergent.id, quantity=Decimal("0.500")))
    ironing = Service(name="Ironing", base_price=3000)
    db_session.add_all([washing, ironing])
    db_session.flush()

    shirt = ClothingType(name="Shirt")
    suit = ClothingType(name="Suit")
    suit.prices.append(ClothingTypePrice(service_id=washing.id, price=8000))
    suit.prices.append(ClothingTypePrice(service_id=ironing.id, price=0))
    db_session.add_all([shirt, suit])
    db_session.commit()

    return {
        "washing": washing,
        "ironing": ironing,
        "shirt": shirt,
        "suit": suit,
        "detergent": detergent,
    }
