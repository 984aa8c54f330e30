"""
RBAC and Authentication services.

Implements:
- RBACService: effective permissions, policy checks, assignment syncs
- RoleService / PermissionService / UserService: admin operations
- AuthService: JWT authentication, login and registration
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

import jwt
from django.conf import settings
from django.contrib.auth import authenticate
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from apps.core.exceptions import ConflictOnWrite, Forbidden, NotFound, ValidationFailed
from apps.core.listing import ListParams, apply_list_params
from apps.core.logging import SecurityLogger
from apps.rbac.constants import DEFAULT_GUARD, MEMBER_ROLE
from apps.rbac.models import (
    User, Permission, Role, RolePermission, UserRole, UserPermission
)
from apps.rbac.policies import Actor, RolePolicy, UserPolicy, merge_permissions

logger = logging.getLogger(__name__)


class RBACService:
    """
    Service for RBAC operations: permission resolution, policy checks and
    replace-all assignment syncs.

    Nothing here is cached across calls; policies always see current rows.
    """

    # Repository-style reads

    @classmethod
    def find_user(cls, user_id) -> User:
        user = User.objects.filter(id=user_id).first()
        if user is None:
            raise NotFound('User not found', details={'id': user_id})
        return user

    @classmethod
    def find_role(cls, role_id) -> Role:
        role = Role.objects.filter(id=role_id).first()
        if role is None:
            raise NotFound('Role not found', details={'id': role_id})
        return role

    @classmethod
    def find_permission(cls, permission_id) -> Permission:
        permission = Permission.objects.filter(id=permission_id).first()
        if permission is None:
            raise NotFound('Permission not found', details={'id': permission_id})
        return permission

    @classmethod
    def roles_of(cls, user: User) -> List[Role]:
        """Roles assigned to a user, ordered by name."""
        return list(Role.objects.filter(user_roles__user=user).order_by('name'))

    @classmethod
    def permissions_of(cls, role: Role) -> FrozenSet[str]:
        """Permission names granted to a role."""
        return frozenset(
            Permission.objects.filter(role_permissions__role=role).values_list('name', flat=True)
        )

    @classmethod
    def direct_permissions_of(cls, user: User) -> FrozenSet[str]:
        """Permission names granted to a user outside any role."""
        return frozenset(
            Permission.objects.filter(user_permissions__user=user).values_list('name', flat=True)
        )

    @classmethod
    def role_permissions_of(cls, user: User) -> FrozenSet[str]:
        """Permission names a user inherits through roles."""
        return merge_permissions((), cls._role_permission_groups(user))

    @classmethod
    def _role_permission_groups(cls, user: User) -> List[List[str]]:
        grouped = defaultdict(list)
        rows = RolePermission.objects.filter(
            role__user_roles__user=user
        ).values_list('role_id', 'permission__name')
        for role_id, name in rows:
            grouped[role_id].append(name)
        return list(grouped.values())

    # Authorization engine

    @classmethod
    def effective_permissions(cls, user: User) -> FrozenSet[str]:
        """
        Resolve every permission name a user holds.

        Direct grants united with the grants of each assigned role. The
        master role gets no bypass here; it holds every permission because
        seed_rbac grants them explicitly.

        Args:
            user: User instance

        Returns:
            Frozenset of permission names (e.g. {'notes.view', 'files.create'})
        """
        if user is None or not getattr(user, 'is_authenticated', False):
            return frozenset()
        return merge_permissions(
            cls.direct_permissions_of(user),
            cls._role_permission_groups(user)
        )

    @classmethod
    def has_permission(cls, user: User, name: str) -> bool:
        """Check if user holds a specific permission."""
        return name in cls.effective_permissions(user)

    @classmethod
    def has_all_permissions(cls, user: User, names: Iterable[str]) -> bool:
        """Check if user holds all the given permissions."""
        return set(names).issubset(cls.effective_permissions(user))

    @classmethod
    def actor_for(cls, user: User) -> Actor:
        """Load the acting user's current roles for a policy decision."""
        rows = list(Role.objects.filter(user_roles__user=user).values_list('id', 'name'))
        return Actor(
            user_id=user.id,
            role_ids=frozenset(role_id for role_id, _ in rows),
            role_names=frozenset(name for _, name in rows),
        )

    @classmethod
    def can_update_role(cls, user: User, role: Role) -> bool:
        return RolePolicy.can_update(cls.actor_for(user), role.id, role.name)

    @classmethod
    def can_delete_role(cls, user: User, role: Role) -> bool:
        return RolePolicy.can_delete(cls.actor_for(user), role.id, role.name)

    @classmethod
    def authorize_role_update(cls, user: User, role: Role):
        """Raise Forbidden unless user may update role."""
        decision = RolePolicy.check_update(cls.actor_for(user), role.id, role.name)
        if not decision:
            SecurityLogger.log_policy_denied('role_update', user.id, 'Role', role.id, decision.reason)
            raise Forbidden('You may not modify this role', details={'id': role.id, 'reason': decision.reason})

    @classmethod
    def authorize_role_delete(cls, user: User, role: Role):
        """Raise Forbidden unless user may delete role."""
        decision = RolePolicy.check_delete(cls.actor_for(user), role.id, role.name)
        if not decision:
            SecurityLogger.log_policy_denied('role_delete', user.id, 'Role', role.id, decision.reason)
            raise Forbidden('You may not delete this role', details={'id': role.id, 'reason': decision.reason})

    # Assignment syncs

    @classmethod
    def _resolve_names(cls, model, ids: Sequence, label: str, guard_name: Optional[str] = None) -> List[str]:
        """
        Resolve ids to names, validating before anything is written.

        Raises:
            ValidationFailed: on duplicate ids, unknown ids or a guard mismatch
        """
        try:
            ids = [int(value) for value in ids]
        except (TypeError, ValueError):
            raise ValidationFailed(f'{label} ids must be integers', details={'ids': list(ids)})

        duplicates = sorted({value for value in ids if ids.count(value) > 1})
        if duplicates:
            raise ValidationFailed(f'Duplicate {label} ids', details={'ids': duplicates})

        rows = {row.id: row for row in model.objects.filter(id__in=ids)}
        unknown = [value for value in ids if value not in rows]
        if unknown:
            raise ValidationFailed(f'Unknown {label} ids', details={'ids': unknown})

        if guard_name:
            mismatched = [value for value in ids if rows[value].guard_name != guard_name]
            if mismatched:
                raise ValidationFailed(
                    f'{label} guard does not match {guard_name}',
                    details={'ids': mismatched, 'guard_name': guard_name}
                )

        return [rows[value].name for value in ids]

    @classmethod
    def _replace(cls, through, owner_field: str, owner, target_model, names: List[str], guard_name: str):
        """
        Replace every (owner, target) row with the targets named in names.

        Targets are looked up by name inside the transaction, so a target
        renamed or removed since validation surfaces as a conflict.
        """
        target_field = target_model._meta.model_name
        targets = list(
            target_model.objects.select_for_update().filter(name__in=names, guard_name=guard_name)
        )
        if len(targets) != len(names):
            missing = sorted(set(names) - {target.name for target in targets})
            raise ConflictOnWrite(
                f'{target_model.__name__} set changed during the update',
                details={'missing': missing}
            )

        wanted = {target.id for target in targets}
        current = set(
            through.objects.filter(**{owner_field: owner}).values_list(f'{target_field}_id', flat=True)
        )

        through.objects.filter(
            **{owner_field: owner, f'{target_field}_id__in': current - wanted}
        ).delete()
        through.objects.bulk_create([
            through(**{owner_field: owner, f'{target_field}_id': target_id})
            for target_id in sorted(wanted - current)
        ])

    @classmethod
    def _atomic_replace(cls, through, owner_field, owner, target_model, names, guard_name):
        try:
            with transaction.atomic():
                cls._replace(through, owner_field, owner, target_model, names, guard_name)
        except IntegrityError as exc:
            logger.warning(
                "Assignment sync conflicted with a concurrent write",
                extra={
                    'through': through.__name__,
                    'owner_id': owner.id,
                    'error': str(exc),
                }
            )
            raise ConflictOnWrite('Assignments changed during the update') from exc

    @classmethod
    def sync_roles(cls, user: User, role_ids: Sequence) -> List[str]:
        """
        Replace the user's role set with exactly role_ids.

        Args:
            user: User instance
            role_ids: Ids of the roles the user should hold

        Returns:
            Names of the roles now assigned

        Raises:
            ValidationFailed: duplicate, unknown or wrong-guard ids
            ConflictOnWrite: the write collided with a concurrent change
        """
        names = cls._resolve_names(Role, role_ids, 'Role', guard_name=DEFAULT_GUARD)
        cls._atomic_replace(UserRole, 'user', user, Role, names, DEFAULT_GUARD)

        logger.info(
            "Roles synced",
            extra={'user_id': user.id, 'roles': sorted(names)}
        )
        return sorted(names)

    @classmethod
    def sync_permissions(cls, principal, permission_ids: Sequence) -> List[str]:
        """
        Replace the direct permissions of a user or the grants of a role.

        Args:
            principal: User or Role instance
            permission_ids: Ids of the permissions to keep

        Returns:
            Names of the permissions now granted
        """
        if isinstance(principal, Role):
            through, owner_field, guard_name = RolePermission, 'role', principal.guard_name
        else:
            through, owner_field, guard_name = UserPermission, 'user', DEFAULT_GUARD

        names = cls._resolve_names(Permission, permission_ids, 'Permission', guard_name=guard_name)
        cls._atomic_replace(through, owner_field, principal, Permission, names, guard_name)

        logger.info(
            "Permissions synced",
            extra={
                'principal_type': type(principal).__name__,
                'principal_id': principal.id,
                'permissions': sorted(names),
            }
        )
        return sorted(names)

    @classmethod
    def sync_permission_roles(cls, permission: Permission, role_ids: Sequence) -> List[str]:
        """Replace the set of roles that are granted permission."""
        names = cls._resolve_names(Role, role_ids, 'Role', guard_name=permission.guard_name)
        cls._atomic_replace(RolePermission, 'permission', permission, Role, names, permission.guard_name)
        return sorted(names)

    @classmethod
    def replace_role_assignments(cls, user: User, role_ids: Sequence) -> List[str]:
        return cls.sync_roles(user, role_ids)

    @classmethod
    def replace_permission_assignments(cls, principal, permission_ids: Sequence) -> List[str]:
        return cls.sync_permissions(principal, permission_ids)


class RoleService:
    """Admin operations on roles."""

    SORTS = ('id', 'name', 'guard_name', 'created_at', 'updated_at')

    @classmethod
    def paginate(cls, params: ListParams, guard_name: Optional[str] = None):
        """Roles filtered, searched and ordered; the view paginates."""
        queryset = Role.objects.for_guard(guard_name).annotate(
            permissions_count=Count('role_permissions', distinct=True)
        ).prefetch_related('permissions')
        return apply_list_params(queryset, params)

    @classmethod
    def _ensure_unique_name(cls, name, guard_name, exclude_id=None):
        queryset = Role.objects.filter(name=name, guard_name=guard_name)
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        if queryset.exists():
            raise ValidationFailed(
                'A role with this name already exists for the guard',
                details={'name': name, 'guard_name': guard_name}
            )

    @classmethod
    @transaction.atomic
    def create(cls, data: Dict[str, Any]) -> Role:
        """
        Create a role and grant it the given permission ids.

        Args:
            data: name, optional guard_name, optional permissions (ids)
        """
        guard_name = data.get('guard_name') or DEFAULT_GUARD
        cls._ensure_unique_name(data['name'], guard_name)

        role = Role.objects.create(name=data['name'], guard_name=guard_name)
        RBACService.sync_permissions(role, data.get('permissions') or [])

        logger.info("Role created", extra={'role_id': role.id, 'role_name': role.name})
        return role

    @classmethod
    def update(cls, acting_user: User, role: Role, data: Dict[str, Any]) -> Role:
        """Rename a role and optionally re-sync its permissions."""
        RBACService.authorize_role_update(acting_user, role)

        with transaction.atomic():
            if 'name' in data and data['name'] != role.name:
                cls._ensure_unique_name(data['name'], role.guard_name, exclude_id=role.id)
                role.name = data['name']
                role.save(update_fields=['name', 'updated_at'])

            if 'permissions' in data:
                RBACService.sync_permissions(role, data['permissions'] or [])

        logger.info(
            "Role updated",
            extra={'role_id': role.id, 'acting_user_id': acting_user.id}
        )
        return role

    @classmethod
    def delete(cls, acting_user: User, role: Role):
        RBACService.authorize_role_delete(acting_user, role)
        role_id = role.id
        role.delete()
        logger.info(
            "Role deleted",
            extra={'role_id': role_id, 'acting_user_id': acting_user.id}
        )

    @classmethod
    def bulk_delete(cls, acting_user: User, ids: Iterable) -> Dict[str, Any]:
        """
        Delete every listed role the delete policy allows.

        Rejected ids are skipped. If nothing remains, ValidationFailed is
        raised and nothing is deleted.

        Returns:
            Dict with the deleted and skipped ids
        """
        ids = sorted({int(value) for value in ids})
        actor = RBACService.actor_for(acting_user)
        roles = list(Role.objects.filter(id__in=ids))

        deletable = [role.id for role in roles if RolePolicy.can_delete(actor, role.id, role.name)]
        skipped = [role_id for role_id in ids if role_id not in deletable]

        if not deletable:
            raise ValidationFailed('None of the selected roles can be deleted', details={'ids': ids})

        with transaction.atomic():
            Role.objects.filter(id__in=deletable).delete()

        if skipped:
            logger.warning(
                "Bulk role delete skipped protected roles",
                extra={'acting_user_id': acting_user.id, 'skipped': skipped}
            )
        return {'deleted': deletable, 'skipped': skipped}

    @classmethod
    def options(cls, guard_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Compact id/name/guard list for select inputs."""
        return list(
            Role.objects.for_guard(guard_name).order_by('name').values('id', 'name', 'guard_name')
        )

    @classmethod
    def total_count(cls, guard_name: Optional[str] = None) -> int:
        return Role.objects.for_guard(guard_name).count()


class PermissionService:
    """Admin operations on permissions."""

    SORTS = ('id', 'name', 'guard_name', 'created_at', 'updated_at')

    @classmethod
    def paginate(cls, params: ListParams, guard_name: Optional[str] = None):
        queryset = Permission.objects.for_guard(guard_name).annotate(
            roles_count=Count('role_permissions', distinct=True)
        ).prefetch_related('roles')
        return apply_list_params(queryset, params)

    @classmethod
    def _ensure_unique_name(cls, name, guard_name, exclude_id=None):
        queryset = Permission.objects.filter(name=name, guard_name=guard_name)
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        if queryset.exists():
            raise ValidationFailed(
                'A permission with this name already exists for the guard',
                details={'name': name, 'guard_name': guard_name}
            )

    @classmethod
    @transaction.atomic
    def create(cls, data: Dict[str, Any]) -> Permission:
        guard_name = data.get('guard_name') or DEFAULT_GUARD
        cls._ensure_unique_name(data['name'], guard_name)

        permission = Permission.objects.create(name=data['name'], guard_name=guard_name)
        if data.get('roles'):
            RBACService.sync_permission_roles(permission, data['roles'])

        logger.info(
            "Permission created",
            extra={'permission_id': permission.id, 'permission_name': permission.name}
        )
        return permission

    @classmethod
    @transaction.atomic
    def update(cls, permission: Permission, data: Dict[str, Any]) -> Permission:
        if 'name' in data and data['name'] != permission.name:
            cls._ensure_unique_name(data['name'], permission.guard_name, exclude_id=permission.id)
            permission.name = data['name']
            permission.save(update_fields=['name', 'updated_at'])

        if 'roles' in data:
            RBACService.sync_permission_roles(permission, data['roles'] or [])

        return permission

    @classmethod
    def delete(cls, permission: Permission):
        permission_id = permission.id
        permission.delete()
        logger.info("Permission deleted", extra={'permission_id': permission_id})

    @classmethod
    def bulk_delete(cls, ids: Iterable) -> int:
        ids = {int(value) for value in ids}
        if not ids:
            raise ValidationFailed('No permissions selected')
        with transaction.atomic():
            deleted, _ = Permission.objects.filter(id__in=ids).delete()
        return deleted

    @classmethod
    def options(cls, guard_name: Optional[str] = None) -> List[Dict[str, Any]]:
        return list(
            Permission.objects.for_guard(guard_name).order_by('name').values('id', 'name', 'guard_name')
        )

    @classmethod
    def total_count(cls, guard_name: Optional[str] = None) -> int:
        return Permission.objects.for_guard(guard_name).count()


class UserService:
    """Admin operations on user accounts."""

    SORTS = ('id', 'name', 'username', 'email', 'created_at', 'updated_at')
    SEARCH_FIELDS = ('name', 'email', 'username')

    @classmethod
    def paginate(cls, params: ListParams):
        queryset = User.objects.prefetch_related('roles__permissions', 'permissions')
        return apply_list_params(queryset, params, search_fields=cls.SEARCH_FIELDS)

    @classmethod
    @transaction.atomic
    def create(cls, data: Dict[str, Any]) -> User:
        """
        Create an account with its roles and direct permissions.

        Args:
            data: name, username, email, password, optional mark_as_verified,
                roles (ids) and permissions (ids)
        """
        extra = {'name': data['name']}
        if data.get('mark_as_verified'):
            extra['email_verified_at'] = timezone.now()

        user = User.objects.create_user(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            **extra
        )
        RBACService.sync_roles(user, data.get('roles') or [])
        RBACService.sync_permissions(user, data.get('permissions') or [])

        logger.info("User created", extra={'target_user_id': user.id})
        return user

    @classmethod
    @transaction.atomic
    def update(cls, user: User, data: Dict[str, Any]) -> User:
        """
        Update profile fields, password, verification and assignments.

        mark_as_verified True verifies an unverified user, False clears the
        verification, and an absent key leaves it untouched.
        """
        update_fields = ['updated_at']
        for field in ('name', 'username', 'email'):
            if field in data and data[field] != getattr(user, field):
                value = data[field]
                if field == 'email':
                    value = User.objects.normalize_email(value)
                setattr(user, field, value)
                update_fields.append(field)

        if data.get('password'):
            user.set_password(data['password'])
            update_fields.append('password_hash')

        if 'mark_as_verified' in data:
            if data['mark_as_verified'] and user.email_verified_at is None:
                user.email_verified_at = timezone.now()
                update_fields.append('email_verified_at')
            elif not data['mark_as_verified'] and user.email_verified_at is not None:
                user.email_verified_at = None
                update_fields.append('email_verified_at')

        user.save(update_fields=update_fields)

        if 'roles' in data:
            RBACService.sync_roles(user, data['roles'] or [])
        if 'permissions' in data:
            RBACService.sync_permissions(user, data['permissions'] or [])

        return user

    @classmethod
    def delete(cls, acting_user: User, user: User):
        decision = UserPolicy.check_delete(acting_user.id, user.id)
        if not decision:
            SecurityLogger.log_policy_denied('user_delete', acting_user.id, 'User', user.id, decision.reason)
            raise Forbidden('This user cannot be deleted', details={'id': user.id, 'reason': decision.reason})

        user.delete()
        logger.info(
            "User deleted",
            extra={'target_user_id': user.id, 'acting_user_id': acting_user.id}
        )

    @classmethod
    def bulk_delete(cls, acting_user: User, ids: Iterable) -> List[int]:
        """
        Soft-delete the listed users, skipping root and the acting user.

        Ids of unknown or already deleted users are dropped as well.

        Raises:
            ValidationFailed: if no existing, deletable user is left

        Returns:
            The ids of the users that were deleted
        """
        requested = UserPolicy.filter_bulk_delete_ids(acting_user.id, ids)

        with transaction.atomic():
            existing = set(User.objects.filter(id__in=requested).values_list('id', flat=True))
            kept = [user_id for user_id in requested if user_id in existing]
            if not kept:
                raise ValidationFailed(
                    'None of the selected users exist',
                    details={'ids': sorted(requested)}
                )
            User.objects.filter(id__in=kept).delete()

        logger.info(
            "Users bulk deleted",
            extra={'acting_user_id': acting_user.id, 'ids': kept}
        )
        return kept

    @classmethod
    def verify(cls, user: User) -> User:
        """Mark the user's email as verified; a no-op when already verified."""
        if not UserPolicy.can_verify(user.id):
            raise Forbidden('The root user cannot be re-verified', details={'id': user.id})

        if user.email_verified_at is None:
            user.email_verified_at = timezone.now()
            user.save(update_fields=['email_verified_at', 'updated_at'])
        return user


class AuthService:
    """
    Service for authentication operations: JWT, login and registration.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = datetime.utcnow()
        payload = {
            'user_id': user.id,
            'username': user.username,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """Extract and return an active, non-deleted user from a JWT token."""
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        return User.objects.filter(id=user_id, is_active=True).first()

    @classmethod
    def login(cls, login: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate by username or email and return a JWT token.

        Returns:
            Dict with user and token, or None if authentication failed
        """
        user = authenticate(request, username=login, password=password)
        if user is None:
            return None

        user.update_last_login()
        logger.info("User logged in", extra={'user_id': user.id})

        return {
            'user': user,
            'token': cls.generate_jwt(user),
        }

    @classmethod
    @transaction.atomic
    def register_user(cls, name: str, username: str, email: str, password: str) -> Dict[str, Any]:
        """
        Register a new, unverified account holding the member role.

        Returns:
            Dict with user and token
        """
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            name=name,
        )

        member = Role.objects.by_name(MEMBER_ROLE)
        if member is not None:
            UserRole.objects.create(user=user, role=member)
        else:
            logger.warning("Member role missing; registered user has no role", extra={'user_id': user.id})

        logger.info("User registered", extra={'user_id': user.id})
        return {
            'user': user,
            'token': cls.generate_jwt(user),
        }
