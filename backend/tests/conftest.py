"""
Pytest fixtures for RBAC admin backend tests.

Provides the app against in-memory SQLite, a per-test table wipe, the seeded
permission catalogue, and helpers for users, roles and auth headers.
"""

import itertools
from decimal import Decimal

import pytest

from rbac_admin import create_app
from rbac_admin.extensions import db
from rbac_admin.models import Category, Permission, Product, Role, RoleModuleOrder, User, UserRole
from rbac_admin.services import permission_service, session_service
from rbac_admin.services.auth_service import hash_password
from rbac_admin.time_utils import utcnow


_counter = itertools.count(1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def permissions(db_session):
    """Seed the built-in permission catalogue. Returns {name: Permission}."""
    permission_service.initialize_permissions()
    return {p.name: p for p in db_session.query(Permission).all()}


def make_role(name=None, permission_names=(), module_order=None, description=None):
    """Create a role holding the named (already seeded) permissions."""
    role = Role(name=name or f"Role {next(_counter)}", description=description)
    db.session.add(role)
    db.session.flush()

    if permission_names:
        ids = [
            pid for (pid,) in db.session.query(Permission.id)
            .filter(Permission.name.in_(list(permission_names)))
            .all()
        ]
        permission_service.sync_role_permissions(role, ids)

    for module, order in (module_order or []):
        db.session.add(RoleModuleOrder(role_id=role.id, module=module, order=order))

    db.session.commit()
    return role


def make_user(name=None, email=None, password="password123", verified=True, roles=()):
    """Create a user and attach `roles` in the given order."""
    n = next(_counter)
    user = User(
        name=name or f"User {n}",
        email=email or f"user{n}@example.com",
        password_hash=hash_password(password),
        email_verified_at=utcnow() if verified else None,
    )
    db.session.add(user)
    db.session.flush()

    for role in roles:
        db.session.add(UserRole(user_id=user.id, role_id=role.id))
        db.session.flush()

    db.session.commit()
    return user


def make_category(name, parent=None, slug=None, is_active=True):
    category = Category(
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        parent_id=parent.id if parent else None,
        is_active=is_active,
    )
    db.session.add(category)
    db.session.commit()
    return category


def make_product(name="Widget", price="9.99", stock=5, category=None):
    product = Product(
        name=name,
        price=Decimal(price),
        stock=stock,
        category_id=category.id if category else None,
    )
    db.session.add(product)
    db.session.commit()
    return product


def auth_headers(user) -> dict:
    """Helper to create Authorization headers for a fresh session."""
    _session, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def user_with(permissions):
    """
    Factory: a verified user whose single role holds exactly the given permissions.

        user, headers = user_with("categories.view", "categories.create")
    """
    def _make(*permission_names, verified=True):
        role = make_role(permission_names=permission_names)
        user = make_user(verified=verified, roles=[role])
        return user, auth_headers(user)
    return _make


@pytest.fixture(scope='function')
def admin(permissions):
    """Super Admin user (every permission) and its headers."""
    role = permission_service.ensure_super_admin_role()
    user = make_user(name="Admin", email="admin@example.com", roles=[role])
    return user, auth_headers(user)
