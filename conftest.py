"""
Pytest configuration and fixtures.
"""
from io import StringIO

import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    # Test clients speak plain HTTP; DEBUG=False would otherwise redirect to HTTPS
    settings.SECURE_SSL_REDIRECT = False
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Rate limit counters live in the cache; start every test from zero."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Store uploaded blobs in a per-test directory."""
    settings.MEDIA_ROOT = str(tmp_path / 'storage')
    return tmp_path / 'storage'


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def rbac_seed(db):
    """
    Seed the permission catalog, the master/admin/member roles (ids 1, 2, 3)
    and one user per role. The master user is the root user (id 1).
    """
    call_command('seed_rbac', '--with-users', stdout=StringIO())


@pytest.fixture
def master_user(rbac_seed):
    from apps.rbac.models import User
    return User.objects.get(username='osmarlg')


@pytest.fixture
def admin_user(rbac_seed):
    from apps.rbac.models import User
    return User.objects.get(username='admin')


@pytest.fixture
def member_user(rbac_seed):
    from apps.rbac.models import User
    return User.objects.get(username='member')


@pytest.fixture
def other_member(rbac_seed):
    """A second member, for ownership isolation tests."""
    from apps.rbac.models import Role, User
    from apps.rbac.services import RBACService

    user = User.objects.create_user(
        username='other',
        email='other@example.com',
        password='password',
        name='Other Member',
    )
    RBACService.sync_roles(user, [Role.objects.by_name('member').id])
    return user


@pytest.fixture
def client_for():
    """Build an API client that sends a Bearer JWT for the given user."""
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def _client_for(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {AuthService.generate_jwt(user)}')
        return client

    return _client_for


@pytest.fixture
def master_client(client_for, master_user):
    return client_for(master_user)


@pytest.fixture
def admin_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture
def member_client(client_for, member_user):
    return client_for(member_user)
