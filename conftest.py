"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings


def pytest_configure(config):
    """Configure Django settings for tests."""
    # PostgreSQL runs stay on PostgreSQL so row-lock tests can execute
    if settings.DATABASES['default']['ENGINE'].endswith('sqlite3'):
        settings.DATABASES['default'] = {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
            'ATOMIC_REQUESTS': False,
        }
    settings.RATELIMIT_ENABLE = False


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def master_admin(db):
    """Create a master administrator."""
    from apps.rbac.models import User
    return User.objects.create_user(
        email='root@example.com',
        name='Root Admin',
        is_master_admin=True
    )


@pytest.fixture
def second_master_admin(db):
    """Create another master administrator."""
    from apps.rbac.models import User
    return User.objects.create_user(
        email='deputy@example.com',
        name='Deputy Admin',
        is_master_admin=True
    )


@pytest.fixture
def user(db):
    """Create a regular user with no memberships."""
    from apps.rbac.models import User
    return User.objects.create_user(
        email='alice@example.com',
        name='Alice'
    )


@pytest.fixture
def tenant(db):
    """Create a test tenant."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Acme',
        slug='acme'
    )


@pytest.fixture
def make_member(db):
    """Factory adding a user to a tenant with a role."""
    from apps.tenants.models import TenantMember

    def _make(tenant, user, role):
        return TenantMember.objects.create(tenant=tenant, user=user, role=role)

    return _make


@pytest.fixture
def auth_client(api_client):
    """Factory returning an API client authenticated with a real JWT for the user."""
    from apps.rbac.services import AuthService

    def _authenticate(user):
        token = AuthService.generate_jwt(user)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return api_client

    return _authenticate
