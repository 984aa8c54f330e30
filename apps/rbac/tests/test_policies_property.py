"""
Property-based tests for the authorization policies.

The policies are pure functions over ids and names, so they are checked
here without a database.
"""
from hypothesis import given, strategies as st

import pytest

from apps.core.exceptions import ValidationFailed
from apps.rbac.constants import ADMIN_ROLE, MASTER_ROLE, MEMBER_ROLE, PROTECTED_ROLE_IDS, ROOT_USER_ID
from apps.rbac.policies import Actor, RolePolicy, UserPolicy, merge_permissions

permission_names = st.sets(st.sampled_from([
    'users.view', 'users.create', 'notes.view', 'notes.create',
    'files.view', 'files.delete', 'roles.manage', 'permissions.manage',
]))
role_names = st.sampled_from([MASTER_ROLE, ADMIN_ROLE, MEMBER_ROLE, 'editor', 'auditor'])
role_ids = st.integers(min_value=1, max_value=50)


def actor(user_id=10, roles=()):
    """Build an Actor from (id, name) pairs."""
    return Actor(
        user_id=user_id,
        role_ids=frozenset(role_id for role_id, _ in roles),
        role_names=frozenset(name for _, name in roles),
    )


class TestMergePermissions:

    @given(direct=permission_names, groups=st.lists(permission_names, max_size=4))
    def test_effective_set_is_union_of_direct_and_role_grants(self, direct, groups):
        expected = set(direct)
        for names in groups:
            expected |= names

        assert merge_permissions(direct, groups) == frozenset(expected)

    @given(names=permission_names)
    def test_permission_held_twice_appears_once(self, names):
        merged = merge_permissions(names, [names, names])
        assert merged == frozenset(names)

    def test_no_grants_is_empty(self):
        assert merge_permissions((), []) == frozenset()


class TestRoleDeletePolicy:

    @given(role_id=st.sampled_from(sorted(PROTECTED_ROLE_IDS)), name=role_names)
    def test_protected_roles_are_never_deletable(self, role_id, name):
        master = actor(roles=[(1, MASTER_ROLE)])
        admin = actor(roles=[(2, ADMIN_ROLE)])

        for candidate in (master, admin, actor()):
            decision = RolePolicy.check_delete(candidate, role_id, name)
            assert not decision
            assert decision.reason == 'protected_role'

    @given(role_id=st.integers(min_value=4, max_value=1000))
    def test_master_may_delete_unprotected_roles_they_do_not_hold(self, role_id):
        master = actor(roles=[(1, MASTER_ROLE)])
        assert RolePolicy.can_delete(master, role_id, 'editor')

    def test_member_may_not_delete_any_role(self):
        member = actor(roles=[(3, MEMBER_ROLE)])
        decision = RolePolicy.check_delete(member, 7, 'editor')
        assert not decision
        assert decision.reason == 'insufficient_tier'


class TestRoleUpdatePolicy:

    @given(role_id=role_ids, name=role_names)
    def test_nobody_modifies_a_role_they_hold(self, role_id, name):
        for tier in (MASTER_ROLE, ADMIN_ROLE):
            holder = actor(roles=[(role_id, name), (99, tier)])
            assert not RolePolicy.can_update(holder, role_id, name)

    def test_admin_never_modifies_reserved_roles(self):
        admin = actor(roles=[(2, ADMIN_ROLE)])

        assert not RolePolicy.can_update(admin, 1, MASTER_ROLE)
        assert not RolePolicy.can_update(admin, 2, ADMIN_ROLE)
        # Reserved by id even when renamed
        assert not RolePolicy.can_update(admin, 1, 'renamed')

    def test_admin_may_modify_other_roles(self):
        admin = actor(roles=[(2, ADMIN_ROLE)])
        assert RolePolicy.can_update(admin, 3, MEMBER_ROLE)
        assert RolePolicy.can_update(admin, 8, 'editor')

    def test_master_may_modify_admin_role(self):
        master = actor(roles=[(1, MASTER_ROLE)])
        assert RolePolicy.can_update(master, 2, ADMIN_ROLE)
        assert not RolePolicy.can_update(master, 1, MASTER_ROLE)

    def test_user_without_tier_role_may_not_modify(self):
        assert RolePolicy.check_update(actor(), 8, 'editor').reason == 'insufficient_tier'


class TestUserPolicy:

    @given(acting=st.integers(min_value=1, max_value=100))
    def test_root_user_is_never_deletable(self, acting):
        assert not UserPolicy.can_delete(acting, ROOT_USER_ID)

    @given(acting=st.integers(min_value=2, max_value=100))
    def test_nobody_deletes_themself(self, acting):
        decision = UserPolicy.check_delete(acting, acting)
        assert not decision
        assert decision.reason == 'self'

    @given(
        acting=st.integers(min_value=1, max_value=20),
        ids=st.lists(st.integers(min_value=1, max_value=20), min_size=1, max_size=15),
    )
    def test_bulk_delete_never_keeps_root_or_self(self, acting, ids):
        remaining = {value for value in ids if value not in (ROOT_USER_ID, acting)}
        if not remaining:
            with pytest.raises(ValidationFailed):
                UserPolicy.filter_bulk_delete_ids(acting, ids)
            return

        kept = UserPolicy.filter_bulk_delete_ids(acting, ids)
        assert set(kept) == remaining
        assert len(kept) == len(set(kept))

    def test_root_user_cannot_be_verified(self):
        assert not UserPolicy.can_verify(ROOT_USER_ID)
        assert UserPolicy.can_verify(2)
