"""
Pytest fixtures for OpsDesk backend tests.

Provides the test app, per-test database wipe, two tenants with users of
every role, and helpers to log in through the API with the test client.
"""

import pytest

from opsdesk import create_app
from opsdesk.context import Identity, RequestContext, TenantContext
from opsdesk.extensions import db
from opsdesk.models import Tenant, User
from opsdesk.services.auth_service import hash_password
from opsdesk.services.event_service import RecordingPublisher


PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'DOCUMENT_NUMBER_RETRY_DELAY': 0,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG, publisher=RecordingPublisher())

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
def publisher(app):
    """The app's recording publisher, emptied for each test."""
    recorder = app.extensions["opsdesk.publisher"]
    recorder.clear()
    return recorder


def _make_tenant(db_session, subdomain, name, active=True):
    tenant = Tenant(subdomain=subdomain, name=name, active=active)
    db_session.add(tenant)
    db_session.commit()
    return tenant


def make_user(db_session, tenant, username, role, *, active=True, is_super_admin=False):
    user = User(
        tenant_id=tenant.id,
        username=username,
        email=f"{username}@{tenant.subdomain}.test",
        password_hash=hash_password(PASSWORD),
        role=role,
        active=active,
        is_super_admin=is_super_admin,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (acme)."""
    return _make_tenant(db_session, "acme", "Acme Corp")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (beta)."""
    return _make_tenant(db_session, "beta", "Beta Inc")


@pytest.fixture(scope='function')
def users_a(db_session, tenant_a):
    """One user per role in tenant A, keyed by role name."""
    return {
        role: make_user(db_session, tenant_a, f"{role}_a", role)
        for role in ("guest", "employee", "manager", "admin", "owner")
    }


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b):
    return make_user(db_session, tenant_b, "admin_b", "admin")


@pytest.fixture(scope='function')
def manager_b(db_session, tenant_b):
    return make_user(db_session, tenant_b, "manager_b", "manager")


def login(app, user, password=PASSWORD):
    """Return a fresh test client holding a session cookie for `user`."""
    client = app.test_client()
    response = client.post('/api/auth/login', json={
        'username': user.username,
        'password': password,
        'tenantId': user.tenant_id,
    })
    assert response.status_code == 200, response.get_json()
    return client


def context_for(user, tenant=None) -> RequestContext:
    """Request context as the middleware would build it for `user`."""
    tenant = tenant or user.tenant
    return RequestContext(
        tenant=TenantContext.from_model(tenant),
        identity=Identity.from_user(user),
        path="/test",
        method="TEST",
    )


def quote_body(*items, tax=0, discount=0, **extra):
    body = {
        'items': [
            {'description': f'Line {i}', 'quantity': quantity, 'unitPrice': price}
            for i, (quantity, price) in enumerate(items or [(2, 100)])
        ],
        'tax': tax,
        'discount': discount,
    }
    body.update(extra)
    return body
