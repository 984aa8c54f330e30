"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login, profile)
- Users with their roles and permissions
- Roles and permissions
- Bulk id payloads
"""
from rest_framework import serializers

from apps.rbac.constants import DEFAULT_GUARD
from apps.rbac.models import User, Permission, Role


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72


def _password_field(required=True):
    return serializers.CharField(
        required=required,
        write_only=True,
        min_length=PASSWORD_MIN_LENGTH,
        max_length=PASSWORD_MAX_LENGTH,
        style={'input_type': 'password'}
    )


class PasswordConfirmationMixin:
    """Require password_confirmation to match password when a password is given."""

    def validate(self, attrs):
        attrs = super().validate(attrs)
        password = attrs.get('password')
        confirmation = attrs.pop('password_confirmation', None)
        if password and password != confirmation:
            raise serializers.ValidationError(
                {'password_confirmation': "The password confirmation does not match."}
            )
        return attrs


class UniqueAccountFieldsMixin:
    """
    Username and email uniqueness, checked against soft-deleted accounts too
    since their rows still hold the unique values.
    """

    def _instance_id(self):
        return getattr(self.instance, 'id', None)

    def _ensure_unique(self, field, value):
        lookup = {f'{field}__iexact': value}
        queryset = User.objects_with_deleted.filter(**lookup)
        if self._instance_id() is not None:
            queryset = queryset.exclude(id=self._instance_id())
        if queryset.exists():
            raise serializers.ValidationError(f"A user with this {field} already exists.")

    def validate_username(self, value):
        value = value.strip()
        self._ensure_unique('username', value)
        return value

    def validate_email(self, value):
        value = User.objects.normalize_email(value)
        self._ensure_unique('email', value)
        return value


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(PasswordConfirmationMixin, UniqueAccountFieldsMixin, serializers.Serializer):
    """Serializer for user registration."""

    name = serializers.CharField(required=True, max_length=120)
    username = serializers.CharField(required=True, max_length=60)
    email = serializers.EmailField(required=True, max_length=190)
    password = _password_field()
    password_confirmation = serializers.CharField(required=True, write_only=True)

    def validate_name(self, value):
        """Validate name is not blank."""
        if not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()


class LoginSerializer(serializers.Serializer):
    """Serializer for user login by username or email."""

    login = serializers.CharField(required=True, max_length=190)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_login(self, value):
        return value.strip()


class ProfileUpdateSerializer(PasswordConfirmationMixin, UniqueAccountFieldsMixin, serializers.Serializer):
    """Serializer for updating the caller's own profile (PUT /v1/auth/me)."""

    name = serializers.CharField(required=False, max_length=120)
    username = serializers.CharField(required=False, max_length=60)
    email = serializers.EmailField(required=False, max_length=190)
    password = _password_field(required=False)
    password_confirmation = serializers.CharField(required=False, write_only=True)


# ===== PERMISSION AND ROLE SERIALIZERS =====

class PermissionSerializer(serializers.ModelSerializer):
    """Serializer for Permission model."""

    roles = serializers.SerializerMethodField()
    roles_count = serializers.SerializerMethodField()

    class Meta:
        model = Permission
        fields = [
            'id', 'name', 'guard_name', 'roles', 'roles_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return [{'id': role.id, 'name': role.name} for role in obj.roles.all()]

    def get_roles_count(self, obj):
        count = getattr(obj, 'roles_count', None)
        if count is None:
            count = obj.role_permissions.count()
        return count


class RoleSerializer(serializers.ModelSerializer):
    """Serializer for Role model."""

    permissions = serializers.SerializerMethodField()
    permissions_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'guard_name', 'permissions', 'permissions_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_permissions(self, obj):
        return [{'id': perm.id, 'name': perm.name} for perm in obj.permissions.all()]

    def get_permissions_count(self, obj):
        count = getattr(obj, 'permissions_count', None)
        if count is None:
            count = obj.role_permissions.count()
        return count


class RoleWriteSerializer(serializers.Serializer):
    """Payload for creating or updating a role."""

    name = serializers.CharField(max_length=80)
    guard_name = serializers.CharField(max_length=50, required=False, default=DEFAULT_GUARD)
    permissions = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        help_text="Ids of the permissions the role grants (replaces the current set)"
    )

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()


class PermissionWriteSerializer(serializers.Serializer):
    """Payload for creating or updating a permission."""

    name = serializers.CharField(max_length=120)
    guard_name = serializers.CharField(max_length=50, required=False, default=DEFAULT_GUARD)
    roles = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        help_text="Ids of the roles granted this permission (replaces the current set)"
    )

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()


class BulkIdsSerializer(serializers.Serializer):
    """Payload for bulk deletes."""

    ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        help_text="Ids to delete"
    )


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User with roles and permissions.

    permissions are the direct grants, role_permissions the unique names
    inherited from roles, and all_permissions the effective set.
    """

    email_verified = serializers.BooleanField(read_only=True)
    roles = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()
    role_permissions = serializers.SerializerMethodField()
    all_permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'name', 'username', 'email', 'email_verified',
            'email_verified_at', 'is_active', 'last_login_at',
            'roles', 'permissions', 'role_permissions', 'all_permissions',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return [{'id': role.id, 'name': role.name} for role in obj.roles.all()]

    def get_permissions(self, obj):
        return sorted(perm.name for perm in obj.permissions.all())

    def get_role_permissions(self, obj):
        return sorted({perm.name for role in obj.roles.all() for perm in role.permissions.all()})

    def get_all_permissions(self, obj):
        return sorted(set(self.get_permissions(obj)) | set(self.get_role_permissions(obj)))


class UserWriteSerializer(PasswordConfirmationMixin, UniqueAccountFieldsMixin, serializers.Serializer):
    """
    Payload for creating (POST) or updating (PUT) a user.

    Password is required on create and optional on update.
    mark_as_verified toggles verification on update only when sent.
    """

    name = serializers.CharField(max_length=120)
    username = serializers.CharField(max_length=60)
    email = serializers.EmailField(max_length=190)
    password = _password_field(required=False)
    password_confirmation = serializers.CharField(required=False, write_only=True)
    mark_as_verified = serializers.BooleanField(required=False)
    roles = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
    permissions = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)

    def validate(self, attrs):
        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': "This field is required."})
        return super().validate(attrs)
