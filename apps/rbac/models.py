"""
RBAC models for account and access control.

Implements:
- User identity (login by username or email, soft-deleted on removal)
- Permission (namespaced `<resource>.<action>` names per guard)
- Role (named permission bundles per guard)
- RolePermission, UserRole, UserPermission (pure assignment joins)
"""
import logging
from django.db import models
from django.db.models import Q
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone

from apps.core.models import BaseModel, TimestampedModel, BaseModelManager, BaseModelQuerySet
from apps.rbac.constants import DEFAULT_GUARD

logger = logging.getLogger(__name__)


class UserManager(BaseModelManager.from_queryset(BaseModelQuerySet)):
    """
    Manager for User queries.

    Excludes soft-deleted users and is compatible with Django's
    authentication system.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_login(self, login):
        """Find a user by username or email."""
        if not login:
            return None
        login = login.strip()
        return self.filter(Q(username=login) | Q(email__iexact=login)).first()

    def create_user(self, username, email, password=None, **extra_fields):
        """
        Create a new user with hashed password.

        This method is compatible with Django's authentication system.
        """
        if not username:
            raise ValueError('Username is required')
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('name', username)

        user = self.model(username=username, email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, email, password=None, **extra_fields):
        """
        Create a verified user holding the master role.

        This method is required for Django's createsuperuser command.
        """
        from apps.rbac.constants import MASTER_ROLE

        extra_fields.setdefault('email_verified_at', timezone.now())
        user = self.create_user(username, email, password, **extra_fields)

        master = Role.objects.by_name(MASTER_ROLE)
        if master is None:
            logger.warning("Master role missing; run seed_rbac before creating a superuser")
        else:
            UserRole.objects.create(user=user, role=master)
        return user

    @staticmethod
    def normalize_email(email):
        """
        Normalize the email address by lowercasing the domain part.
        """
        email = (email or '').strip()
        try:
            email_name, domain_part = email.rsplit('@', 1)
        except ValueError:
            return email
        return email_name + '@' + domain_part.lower()

    def get_by_natural_key(self, username):
        """
        Get user by natural key (username).

        This method is required for Django's authentication system.
        """
        return self.get(**{self.model.USERNAME_FIELD: username})


class User(BaseModel):
    """
    Account identity.

    Authentication accepts either the username or the email. Deleting a
    user soft-deletes the row; the root user (id 1) is never deleted.

    This is the AUTH_USER_MODEL for the entire application.
    """

    username = models.CharField(
        max_length=60,
        unique=True,
        help_text="Unique login handle"
    )
    email = models.EmailField(
        max_length=190,
        unique=True,
        help_text="User email address (unique)"
    )
    name = models.CharField(
        max_length=120,
        help_text="Display name"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    email_verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email was verified (null means unverified)"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    roles = models.ManyToManyField(
        'Role',
        through='UserRole',
        related_name='users',
        blank=True,
    )
    permissions = models.ManyToManyField(
        'Permission',
        through='UserPermission',
        related_name='users',
        blank=True,
        help_text="Direct permission grants (in addition to role permissions)"
    )

    USERNAME_FIELD = 'username'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['email']

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-id']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='users_active_created_idx'),
        ]

    def __str__(self):
        return self.username

    @property
    def password(self):
        """Alias for password_hash for Django auth compatibility."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_username(self):
        return self.username

    def get_full_name(self):
        return self.name or self.username

    @property
    def email_verified(self):
        return self.email_verified_at is not None

    def update_last_login(self):
        """Update last_login_at to current time."""
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at'])

    @property
    def is_authenticated(self):
        """Always True for User instances (Django auth compatibility)."""
        return True

    @property
    def is_anonymous(self):
        """Always False for User instances (Django auth compatibility)."""
        return False

    def has_perm(self, perm, obj=None):
        """Check a permission name against the user's effective permissions."""
        from apps.rbac.services import RBACService
        return RBACService.has_permission(self, perm)

    def natural_key(self):
        return (self.username,)


class PermissionManager(models.Manager):
    """Manager for Permission queries."""

    def for_guard(self, guard_name=None):
        """Permissions of one guard (all guards when guard_name is empty)."""
        if not guard_name:
            return self.all()
        return self.filter(guard_name=guard_name)

    def by_name(self, name, guard_name=DEFAULT_GUARD):
        """Find permission by name."""
        return self.filter(name=name, guard_name=guard_name).first()


class Permission(TimestampedModel):
    """
    Permission definitions.

    Names are namespaced as `<resource>.<action>` (e.g. 'users.view',
    'folders_files.manage'). The canonical set is seeded by seed_rbac.
    """

    name = models.CharField(
        max_length=120,
        help_text="Permission name (e.g., 'notes.view')"
    )
    guard_name = models.CharField(
        max_length=50,
        default=DEFAULT_GUARD,
        db_index=True,
        help_text="Authentication guard this permission belongs to"
    )

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['name']
        unique_together = [('name', 'guard_name')]

    def __str__(self):
        return self.name


class RoleManager(models.Manager):
    """Manager for Role queries."""

    def for_guard(self, guard_name=None):
        """Roles of one guard (all guards when guard_name is empty)."""
        if not guard_name:
            return self.all()
        return self.filter(guard_name=guard_name)

    def by_name(self, name, guard_name=DEFAULT_GUARD):
        """Find role by name."""
        return self.filter(name=name, guard_name=guard_name).first()


class Role(TimestampedModel):
    """
    Named bundle of permissions.

    The seeded roles master (1), admin (2) and member (3) are protected
    from deletion; see apps.rbac.policies.RolePolicy.
    """

    name = models.CharField(
        max_length=80,
        help_text="Role name (e.g., 'admin')"
    )
    guard_name = models.CharField(
        max_length=50,
        default=DEFAULT_GUARD,
        db_index=True,
        help_text="Authentication guard this role belongs to"
    )
    permissions = models.ManyToManyField(
        Permission,
        through='RolePermission',
        related_name='roles',
        blank=True,
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name']
        unique_together = [('name', 'guard_name')]

    def __str__(self):
        return self.name


class RolePermission(models.Model):
    """Maps permissions to roles."""

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
    )

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]

    def __str__(self):
        return f"{self.role_id} -> {self.permission_id}"


class UserRole(models.Model):
    """Maps roles to users."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='user_roles',
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
    )

    class Meta:
        db_table = 'user_roles'
        unique_together = [('user', 'role')]

    def __str__(self):
        return f"{self.user_id} -> {self.role_id}"


class UserPermission(models.Model):
    """Direct permission grant to a user, independent of roles."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='user_permissions',
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='user_permissions',
    )

    class Meta:
        db_table = 'user_permissions'
        unique_together = [('user', 'permission')]

    def __str__(self):
        return f"{self.user_id} -> {self.permission_id}"
