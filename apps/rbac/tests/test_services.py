"""
Tests for the RBAC services: permission resolution, policy enforcement
against stored roles and replace-all assignment syncs.
"""
from datetime import datetime, timedelta

import jwt
import pytest
from django.conf import settings

from apps.core.exceptions import ConflictOnWrite, Forbidden, ValidationFailed
from apps.rbac.constants import ADMIN_PERMISSIONS, CANONICAL_PERMISSIONS, MEMBER_PERMISSIONS
from apps.rbac.models import Permission, Role, User, UserPermission, UserRole
from apps.rbac.services import AuthService, RBACService, RoleService, UserService


def permission_ids(*names):
    return list(Permission.objects.filter(name__in=names).values_list('id', flat=True))


def role(name):
    return Role.objects.by_name(name)


@pytest.mark.django_db
class TestEffectivePermissions:

    def test_seeded_roles_hold_their_grants(self, master_user, admin_user, member_user):
        assert RBACService.effective_permissions(master_user) == frozenset(CANONICAL_PERMISSIONS)
        assert RBACService.effective_permissions(admin_user) == frozenset(ADMIN_PERMISSIONS)
        assert RBACService.effective_permissions(member_user) == frozenset(MEMBER_PERMISSIONS)

    def test_direct_grants_are_added_to_role_grants(self, member_user):
        RBACService.sync_permissions(member_user, permission_ids('users.view'))

        effective = RBACService.effective_permissions(member_user)
        assert 'users.view' in effective
        assert frozenset(MEMBER_PERMISSIONS) <= effective

    def test_permission_from_two_sources_is_counted_once(self, member_user):
        RBACService.sync_permissions(member_user, permission_ids('notes.view'))

        assert RBACService.direct_permissions_of(member_user) == {'notes.view'}
        assert RBACService.effective_permissions(member_user) == frozenset(MEMBER_PERMISSIONS)

    def test_user_without_roles_or_grants_has_nothing(self, rbac_seed):
        user = User.objects.create_user(username='bare', email='bare@example.com', password='password')
        assert RBACService.effective_permissions(user) == frozenset()

    def test_anonymous_has_nothing(self):
        from django.contrib.auth.models import AnonymousUser
        assert RBACService.effective_permissions(AnonymousUser()) == frozenset()

    def test_revoking_a_role_takes_effect_immediately(self, member_user):
        assert RBACService.has_permission(member_user, 'notes.view')

        RBACService.sync_roles(member_user, [])

        assert not RBACService.has_permission(member_user, 'notes.view')

    def test_has_all_permissions(self, admin_user):
        assert RBACService.has_all_permissions(admin_user, ['users.view', 'notes.view'])
        assert not RBACService.has_all_permissions(admin_user, ['users.view', 'roles.manage'])


@pytest.mark.django_db
class TestSyncRoles:

    def test_result_is_exactly_the_requested_set(self, member_user):
        names = RBACService.sync_roles(member_user, [role('admin').id, role('member').id])

        assert names == ['admin', 'member']
        assert {r.name for r in RBACService.roles_of(member_user)} == {'admin', 'member'}

    def test_sync_is_idempotent(self, member_user):
        ids = [role('admin').id]
        RBACService.sync_roles(member_user, ids)
        RBACService.sync_roles(member_user, ids)

        assert UserRole.objects.filter(user=member_user).count() == 1

    def test_empty_list_removes_every_role(self, member_user):
        assert RBACService.sync_roles(member_user, []) == []
        assert not UserRole.objects.filter(user=member_user).exists()

    def test_duplicate_ids_are_rejected_without_changes(self, member_user):
        member_id = role('member').id
        with pytest.raises(ValidationFailed):
            RBACService.sync_roles(member_user, [role('admin').id, role('admin').id])

        assert list(UserRole.objects.filter(user=member_user).values_list('role_id', flat=True)) == [member_id]

    def test_unknown_ids_are_rejected_without_changes(self, member_user):
        with pytest.raises(ValidationFailed) as excinfo:
            RBACService.sync_roles(member_user, [role('admin').id, 9999])

        assert excinfo.value.details['ids'] == [9999]
        assert [r.name for r in RBACService.roles_of(member_user)] == ['member']

    def test_role_of_another_guard_is_rejected(self, member_user):
        api_role = Role.objects.create(name='api-client', guard_name='api')
        with pytest.raises(ValidationFailed):
            RBACService.sync_roles(member_user, [api_role.id])

    def test_role_removed_during_sync_is_a_conflict(self, member_user, monkeypatch):
        editor = Role.objects.create(name='editor')
        original = RBACService._resolve_names

        def resolve_then_delete(*args, **kwargs):
            names = original(*args, **kwargs)
            Role.objects.filter(id=editor.id).delete()
            return names

        monkeypatch.setattr(RBACService, '_resolve_names', resolve_then_delete)

        with pytest.raises(ConflictOnWrite):
            RBACService.sync_roles(member_user, [editor.id])
        assert [r.name for r in RBACService.roles_of(member_user)] == ['member']


@pytest.mark.django_db
class TestSyncPermissions:

    def test_role_grants_are_replaced(self, rbac_seed):
        editor = Role.objects.create(name='editor')
        RBACService.sync_permissions(editor, permission_ids('notes.view', 'notes.update'))
        names = RBACService.sync_permissions(editor, permission_ids('notes.view'))

        assert names == ['notes.view']
        assert RBACService.permissions_of(editor) == {'notes.view'}

    def test_direct_user_grants_are_replaced(self, member_user):
        RBACService.sync_permissions(member_user, permission_ids('users.view', 'users.create'))
        RBACService.sync_permissions(member_user, [])

        assert not UserPermission.objects.filter(user=member_user).exists()

    def test_permission_roles_are_replaced(self, rbac_seed):
        permission = Permission.objects.by_name('roles.manage')
        names = RBACService.sync_permission_roles(permission, [role('master').id, role('admin').id])

        assert names == ['admin', 'master']
        assert {r.name for r in permission.roles.all()} == {'admin', 'master'}

    def test_non_integer_ids_are_rejected(self, member_user):
        with pytest.raises(ValidationFailed):
            RBACService.sync_permissions(member_user, ['notes.view'])


@pytest.mark.django_db
class TestRolePolicyEnforcement:

    def test_master_may_update_admin_role(self, master_user):
        RoleService.update(master_user, role('admin'), {'name': 'admin'})

    def test_master_may_not_update_own_role(self, master_user):
        with pytest.raises(Forbidden) as excinfo:
            RoleService.update(master_user, role('master'), {'name': 'root'})

        assert excinfo.value.details['reason'] == 'own_role'
        assert role('master') is not None

    def test_admin_may_not_touch_reserved_roles(self, admin_user):
        for name in ('master', 'admin'):
            with pytest.raises(Forbidden):
                RoleService.update(admin_user, role(name), {'permissions': []})

        assert RBACService.permissions_of(role('master')) == frozenset(CANONICAL_PERMISSIONS)

    def test_admin_may_update_member_role(self, admin_user):
        RoleService.update(admin_user, role('member'), {'permissions': permission_ids('notes.view')})
        assert RBACService.permissions_of(role('member')) == {'notes.view'}

    def test_policy_reads_current_roles(self, admin_user, master_user):
        editor = Role.objects.create(name='editor')
        assert RBACService.can_update_role(admin_user, editor)

        RBACService.sync_roles(admin_user, [role('admin').id, editor.id])

        assert not RBACService.can_update_role(admin_user, editor)

    def test_protected_roles_are_never_deleted(self, master_user):
        for name in ('admin', 'member'):
            with pytest.raises(Forbidden):
                RoleService.delete(master_user, role(name))
        assert Role.objects.count() == 3

    def test_master_deletes_custom_role(self, master_user):
        editor = Role.objects.create(name='editor')
        RoleService.delete(master_user, editor)
        assert not Role.objects.filter(id=editor.id).exists()

    def test_bulk_delete_skips_protected_roles(self, master_user):
        editor = Role.objects.create(name='editor')
        result = RoleService.bulk_delete(master_user, [1, 2, 3, editor.id])

        assert result == {'deleted': [editor.id], 'skipped': [1, 2, 3]}
        assert Role.objects.count() == 3

    def test_bulk_delete_of_only_protected_roles_fails(self, master_user):
        with pytest.raises(ValidationFailed):
            RoleService.bulk_delete(master_user, [1, 2, 3])

    def test_duplicate_role_name_is_rejected(self, rbac_seed):
        with pytest.raises(ValidationFailed):
            RoleService.create({'name': 'member'})


@pytest.mark.django_db
class TestUserService:

    def test_root_user_cannot_be_deleted(self, admin_user, master_user):
        assert master_user.id == 1
        with pytest.raises(Forbidden):
            UserService.delete(admin_user, master_user)

    def test_user_cannot_delete_themself(self, admin_user):
        with pytest.raises(Forbidden):
            UserService.delete(admin_user, admin_user)

    def test_delete_is_soft(self, master_user, member_user):
        UserService.delete(master_user, member_user)

        assert not User.objects.filter(id=member_user.id).exists()
        assert User.objects_with_deleted.get(id=member_user.id).is_deleted

    def test_bulk_delete_keeps_root_and_self(self, admin_user, member_user, master_user):
        kept = UserService.bulk_delete(admin_user, [master_user.id, admin_user.id, member_user.id])

        assert kept == [member_user.id]
        assert set(User.objects.values_list('id', flat=True)) == {master_user.id, admin_user.id}

    def test_bulk_delete_reports_only_existing_users(self, master_user, member_user):
        kept = UserService.bulk_delete(master_user, [member_user.id, 999])

        assert kept == [member_user.id]

    def test_bulk_delete_of_unknown_or_deleted_users_fails(self, master_user, member_user):
        member_user.delete()

        with pytest.raises(ValidationFailed):
            UserService.bulk_delete(master_user, [member_user.id, 999])

    def test_verify_is_idempotent(self, rbac_seed):
        user = User.objects.create_user(username='new', email='new@example.com', password='password')

        first = UserService.verify(user).email_verified_at
        second = UserService.verify(user).email_verified_at

        assert first is not None
        assert first == second

    def test_root_user_cannot_be_verified(self, master_user):
        with pytest.raises(Forbidden):
            UserService.verify(master_user)

    def test_mark_as_verified_is_tri_state(self, member_user):
        UserService.update(member_user, {'mark_as_verified': False})
        assert member_user.email_verified_at is None

        UserService.update(member_user, {'name': 'Renamed'})
        assert member_user.email_verified_at is None

        UserService.update(member_user, {'mark_as_verified': True})
        assert member_user.email_verified_at is not None

    def test_create_assigns_roles_and_permissions(self, rbac_seed):
        user = UserService.create({
            'name': 'Grace',
            'username': 'grace',
            'email': 'grace@example.com',
            'password': 'password123',
            'mark_as_verified': True,
            'roles': [role('member').id],
            'permissions': permission_ids('users.view'),
        })

        assert user.email_verified
        assert RBACService.has_all_permissions(user, ['users.view', 'notes.view'])


@pytest.mark.django_db
class TestAuthService:

    def test_login_with_username_or_email(self, member_user):
        assert AuthService.login('member', 'password')['user'] == member_user
        assert AuthService.login('MEMBER@notes-hub.test', 'password')['user'] == member_user

    def test_login_with_wrong_password_fails(self, member_user):
        assert AuthService.login('member', 'wrong-password') is None

    def test_deleted_user_cannot_login(self, master_user, member_user):
        UserService.delete(master_user, member_user)
        assert AuthService.login('member', 'password') is None

    def test_jwt_resolves_to_user(self, member_user):
        token = AuthService.generate_jwt(member_user)
        assert AuthService.get_user_from_jwt(token) == member_user

    def test_expired_jwt_is_rejected(self, member_user):
        payload = {
            'user_id': member_user.id,
            'exp': datetime.utcnow() - timedelta(minutes=1),
            'iat': datetime.utcnow() - timedelta(hours=1),
        }
        token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm='HS256')
        assert AuthService.get_user_from_jwt(token) is None

    def test_jwt_signed_with_other_key_is_rejected(self, member_user):
        token = jwt.encode({'user_id': member_user.id}, 'x' * 40, algorithm='HS256')
        assert AuthService.get_user_from_jwt(token) is None

    def test_registration_assigns_member_role(self, rbac_seed):
        result = AuthService.register_user('Ada', 'ada', 'ada@example.com', 'password123')

        user = result['user']
        assert [r.name for r in RBACService.roles_of(user)] == ['member']
        assert not user.email_verified
        assert AuthService.get_user_from_jwt(result['token']) == user
