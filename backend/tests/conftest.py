"""
Pytest fixtures for Nexero backend tests.

Provides test database setup, two tenants with their users and products,
service contexts, and the authenticated test client helpers.
"""

import pytest
from nexero import create_app
from nexero.config import TestConfig
from nexero.extensions import db
from nexero.models import Organization, User
from nexero.services.auth_service import hash_password
from nexero.services.catalog_service import create_product
from nexero.services.tenant_service import OperationContext


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    class _Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path_factory.mktemp("uploads"))

    app = create_app(_Config)

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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Loja Acme", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Loja Beta", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _make_user(db_session, org, email, name, role):
    user = User(
        org_id=org.id,
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(PASSWORD),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session, org_a):
    """Admin of Organization A."""
    return _make_user(db_session, org_a, "ana@acme.com", "Ana", "ADMIN")


@pytest.fixture(scope='function')
def user_b(db_session, org_b):
    """Admin of Organization B."""
    return _make_user(db_session, org_b, "bruno@beta.com", "Bruno", "ADMIN")


@pytest.fixture(scope='function')
def cashier_a(db_session, org_a):
    """Cashier of Organization A (POS only)."""
    return _make_user(db_session, org_a, "caio@acme.com", "Caio", "CASHIER")


@pytest.fixture(scope='function')
def ctx_a(user_a):
    return OperationContext(org_id=user_a.org_id, user_id=user_a.id, salesperson=user_a.name)


@pytest.fixture(scope='function')
def ctx_b(user_b):
    return OperationContext(org_id=user_b.org_id, user_id=user_b.id, salesperson=user_b.name)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(ctx, sku, price, stock=10, ...) through the catalog service."""
    def _make(ctx, sku, price, stock=10, name=None, **extra):
        patch = {"sku": sku, "name": name or f"Produto {sku}", "price": price, "stock": stock}
        patch.update(extra)
        return create_product(ctx, patch)
    return _make


@pytest.fixture(scope='function')
def product_a(ctx_a, make_product):
    """Product in Organization A: 10.00, 20 un."""
    return make_product(ctx_a, "CAM-001", "10.00", stock=20, name="Camiseta")


@pytest.fixture(scope='function')
def product_b(ctx_b, make_product):
    """Product in Organization B."""
    return make_product(ctx_b, "BON-001", "25.00", stock=5, name="Boné")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def admin_headers(client, user_a):
    return auth_headers(get_auth_token(client, user_a.email))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_a):
    return auth_headers(get_auth_token(client, cashier_a.email))


@pytest.fixture(scope='function')
def headers_b(client, user_b):
    return auth_headers(get_auth_token(client, user_b.email))
