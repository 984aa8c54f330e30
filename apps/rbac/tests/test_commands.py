"""
Tests for the seed_rbac management command.
"""
from io import StringIO

import pytest
from django.core.management import call_command

from apps.rbac.constants import CANONICAL_PERMISSIONS, MEMBER_PERMISSIONS
from apps.rbac.models import Permission, Role, User
from apps.rbac.services import RBACService


@pytest.mark.django_db
class TestSeedRbac:

    def test_seeds_catalog_and_roles_with_reserved_ids(self):
        call_command('seed_rbac', stdout=StringIO())

        assert set(Permission.objects.values_list('name', flat=True)) == set(CANONICAL_PERMISSIONS)
        assert dict(Role.objects.values_list('id', 'name')) == {1: 'master', 2: 'admin', 3: 'member'}
        assert RBACService.permissions_of(Role.objects.get(id=3)) == frozenset(MEMBER_PERMISSIONS)

    def test_is_idempotent(self):
        call_command('seed_rbac', '--with-users', stdout=StringIO())
        call_command('seed_rbac', '--with-users', stdout=StringIO())

        assert Permission.objects.count() == len(CANONICAL_PERMISSIONS)
        assert Role.objects.count() == 3
        assert User.objects.count() == 3

    def test_first_seeded_user_is_root_master(self):
        call_command('seed_rbac', '--with-users', stdout=StringIO())

        root = User.objects.get(id=1)
        assert root.username == 'osmarlg'
        assert RBACService.effective_permissions(root) == frozenset(CANONICAL_PERMISSIONS)
