"""
Pytest fixtures for pestguard backend tests.

Provides the test database, a small customer/store tree, staff and
access-owner accounts, and bearer-token helpers.

Fixture tree:
- customer_a (id 1): store_a (id 10), store_a2 (id 11)
- customer_b (id 2): store_b (id 20)
- admin (id 1), employee (id 3), employee_2 (id 4)
- owner (id 5): access owner with no grants until a test adds some
"""

import pytest

from pestguard import create_app
from pestguard.extensions import db
from pestguard.models import AccessOwner, Admin, Customer, Employee, Store
from pestguard.services.auth_service import hash_password
from pestguard.services.session_service import Actor, create_session


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test',
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
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


# Fast bcrypt cost for fixtures only
_PASSWORD_HASH = None


def _password_hash() -> str:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD, rounds=4)
    return _PASSWORD_HASH


@pytest.fixture(scope='function')
def customer_a(db_session):
    customer = Customer(id=1, title="Acme Gıda", code="ACME")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session):
    customer = Customer(id=2, title="Beta Otel", code="BETA")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def store_a(db_session, customer_a):
    """Store 10 of customer 1."""
    store = Store(id=10, customer_id=customer_a.id, name="Kadıköy", code="A-10")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a2(db_session, customer_a):
    """Sibling of store_a under the same customer."""
    store = Store(id=11, customer_id=customer_a.id, name="Beşiktaş", code="A-11")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session, customer_b):
    store = Store(id=20, customer_id=customer_b.id, name="Bodrum", code="B-20")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin(db_session):
    account = Admin(id=1, email="admin@pestguard.test", full_name="Ayşe Yönetici", password_hash=_password_hash())
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def employee(db_session):
    account = Employee(id=3, email="tech@pestguard.test", full_name="Mehmet Teknisyen", password_hash=_password_hash())
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def employee_2(db_session):
    account = Employee(id=4, email="tech2@pestguard.test", full_name="Can Teknisyen", password_hash=_password_hash())
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def owner(db_session):
    account = AccessOwner(
        id=5,
        email="owner@acme.test",
        first_name="Zeynep",
        last_name="Sahip",
        role="MAGAZA_MUDURU",
        password_hash=_password_hash(),
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def admin_actor(admin):
    return Actor(id=admin.id, role="admin", display_name=admin.display_name)


@pytest.fixture(scope='function')
def employee_actor(employee):
    return Actor(id=employee.id, role="employee", display_name=employee.display_name)


@pytest.fixture(scope='function')
def owner_actor(owner):
    return Actor(id=owner.id, role="customer", display_name=owner.display_name)


def token_for(actor: Actor) -> str:
    """Issue a session token without going through the login endpoint."""
    _, token = create_session(actor)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_actor):
    return auth_headers(token_for(admin_actor))


@pytest.fixture(scope='function')
def employee_headers(employee_actor):
    return auth_headers(token_for(employee_actor))


@pytest.fixture(scope='function')
def owner_headers(owner_actor):
    return auth_headers(token_for(owner_actor))
