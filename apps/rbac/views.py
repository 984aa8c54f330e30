"""
RBAC admin REST API views.

Implements endpoints for:
- User management (CRUD, bulk delete, verification)
- Role management (CRUD, bulk delete, options)
- Permission management (CRUD, bulk delete, options)
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.listing import (
    LargeResultsSetPagination, StandardResultsSetPagination,
    paginated_response, parse_list_params
)
from apps.core.permissions import HasPermissions, MethodPermissionsMixin, requires_permissions
from apps.rbac.models import User
from apps.rbac.services import RBACService, RoleService, PermissionService, UserService
from apps.rbac.serializers import (
    UserSerializer, UserWriteSerializer, RoleSerializer, RoleWriteSerializer,
    PermissionSerializer, PermissionWriteSerializer, BulkIdsSerializer
)


LIST_PARAMETERS = [
    OpenApiParameter('search', OpenApiTypes.STR, description='Case-insensitive substring search'),
    OpenApiParameter('sort', OpenApiTypes.STR, description='Sort column; unknown columns fall back to id'),
    OpenApiParameter('dir', OpenApiTypes.STR, description='asc or desc (default desc)'),
    OpenApiParameter('page', OpenApiTypes.INT, description='Page number'),
    OpenApiParameter('per_page', OpenApiTypes.INT, description='Page size'),
]

GUARD_PARAMETER = OpenApiParameter('guard_name', OpenApiTypes.STR, description='Only entries of this guard')


def _user_with_relations(user_id):
    return User.objects.prefetch_related('roles__permissions', 'permissions').get(pk=user_id)


# ===== USERS =====

@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Users'],
        summary='List users',
        description='''
Paginated user list with roles, direct permissions, inherited role
permissions and the effective permission set.

**Required permission:** `users.view`

Search matches name, email and username.
        ''',
        parameters=LIST_PARAMETERS,
        responses={200: UserSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['Admin - Users'],
        summary='Create user',
        description='**Required permission:** `users.create`',
        request=UserWriteSerializer,
        responses={201: UserSerializer, 400: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    )
)
class UserListView(MethodPermissionsMixin, APIView):
    """
    GET /v1/admin/users/
    POST /v1/admin/users/
    """
    permission_classes = [HasPermissions]

    @requires_permissions('users.view')
    def get(self, request):
        params = parse_list_params(request.query_params, UserService.SORTS)
        queryset = UserService.paginate(params)
        return paginated_response(request, queryset, UserSerializer, StandardResultsSetPagination)

    @requires_permissions('users.create')
    def post(self, request):
        serializer = UserWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = UserService.create(serializer.validated_data)
        return Response(UserSerializer(_user_with_relations(user.id)).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Users'],
        summary='Get user',
        description='**Required permission:** `users.view`',
        responses={200: UserSerializer, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['Admin - Users'],
        summary='Update user',
        description='''
**Required permission:** `users.update`

`password` is optional. `mark_as_verified` verifies (true) or unverifies
(false) the account. `roles` and `permissions` replace the current sets
when sent.
        ''',
        request=UserWriteSerializer,
        responses={200: UserSerializer, 400: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['Admin - Users'],
        summary='Delete user',
        description='''
**Required permission:** `users.delete`

The root user and the caller's own account cannot be deleted (403).
        ''',
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
)
class UserDetailView(MethodPermissionsMixin, APIView):
    """
    GET /v1/admin/users/{id}/
    PUT /v1/admin/users/{id}/
    DELETE /v1/admin/users/{id}/
    """
    permission_classes = [HasPermissions]

    @requires_permissions('users.view')
    def get(self, request, user_id):
        user = RBACService.find_user(user_id)
        return Response(UserSerializer(_user_with_relations(user.id)).data)

    @requires_permissions('users.update')
    def put(self, request, user_id):
        user = RBACService.find_user(user_id)
        serializer = UserWriteSerializer(instance=user, data=request.data)
        serializer.is_valid(raise_exception=True)

        UserService.update(user, serializer.validated_data)
        return Response(UserSerializer(_user_with_relations(user.id)).data)

    @requires_permissions('users.delete')
    def delete(self, request, user_id):
        user = RBACService.find_user(user_id)
        UserService.delete(request.user, user)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Admin - Users'],
    summary='Bulk delete users',
    description='''
**Required permission:** `users.delete`

The root user and the caller are silently skipped; if nothing remains the
request fails with 422.
    ''',
    request=BulkIdsSerializer,
    responses={200: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
)
@requires_permissions('users.delete')
class UserBulkDeleteView(APIView):
    """
    DELETE /v1/admin/users/bulk/
    """
    permission_classes = [HasPermissions]

    def delete(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted = UserService.bulk_delete(request.user, serializer.validated_data['ids'])
        return Response({'deleted': deleted})


@extend_schema(
    tags=['Admin - Users'],
    summary='Verify user email',
    description='''
**Required permission:** `users.update`

Idempotent. The root user cannot be re-verified (403).
    ''',
    request=None,
    responses={200: UserSerializer, 403: OpenApiTypes.OBJECT}
)
@requires_permissions('users.update')
class UserVerifyView(APIView):
    """
    POST /v1/admin/users/{id}/verify/
    """
    permission_classes = [HasPermissions]

    def post(self, request, user_id):
        user = UserService.verify(RBACService.find_user(user_id))
        return Response(UserSerializer(_user_with_relations(user.id)).data)


# ===== ROLES =====

@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Roles'],
        summary='List roles',
        description='**Required permission:** `roles.manage`',
        parameters=LIST_PARAMETERS + [GUARD_PARAMETER],
        responses={200: RoleSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['Admin - Roles'],
        summary='Create role',
        description='''
**Required permission:** `roles.manage`

`permissions` is a list of permission ids granted to the new role.
        ''',
        request=RoleWriteSerializer,
        responses={201: RoleSerializer, 400: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('roles.manage')
class RoleListView(APIView):
    """
    GET /v1/admin/roles/
    POST /v1/admin/roles/
    """
    permission_classes = [HasPermissions]

    def get(self, request):
        guard_name = request.query_params.get('guard_name') or None
        params = parse_list_params(request.query_params, RoleService.SORTS)
        queryset = RoleService.paginate(params, guard_name=guard_name)
        return paginated_response(
            request, queryset, RoleSerializer, StandardResultsSetPagination,
            extra={'total': RoleService.total_count(guard_name)}
        )

    def post(self, request):
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.create(serializer.validated_data)
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Roles'],
        summary='Get role',
        description='**Required permission:** `roles.manage`',
        responses={200: RoleSerializer, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['Admin - Roles'],
        summary='Update role',
        description='''
**Required permission:** `roles.manage`

Masters may update any role except one they hold. Admins may not update
the master or admin roles, nor a role they hold (403).
        ''',
        request=RoleWriteSerializer,
        responses={200: RoleSerializer, 403: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['Admin - Roles'],
        summary='Delete role',
        description='''
**Required permission:** `roles.manage`

The seeded roles (ids 1, 2, 3) can never be deleted (403).
        ''',
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('roles.manage')
class RoleDetailView(APIView):
    """
    GET /v1/admin/roles/{id}/
    PUT /v1/admin/roles/{id}/
    DELETE /v1/admin/roles/{id}/
    """
    permission_classes = [HasPermissions]

    def get(self, request, role_id):
        return Response(RoleSerializer(RBACService.find_role(role_id)).data)

    def put(self, request, role_id):
        role = RBACService.find_role(role_id)
        serializer = RoleWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        role = RoleService.update(request.user, role, serializer.validated_data)
        return Response(RoleSerializer(RBACService.find_role(role.id)).data)

    def delete(self, request, role_id):
        RoleService.delete(request.user, RBACService.find_role(role_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Admin - Roles'],
    summary='Bulk delete roles',
    description='''
**Required permission:** `roles.manage`

Roles the caller may not delete are skipped and reported; if none remain
the request fails with 422.
    ''',
    request=BulkIdsSerializer,
    responses={200: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
)
@requires_permissions('roles.manage')
class RoleBulkDeleteView(APIView):
    """
    DELETE /v1/admin/roles/bulk/
    """
    permission_classes = [HasPermissions]

    def delete(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response(RoleService.bulk_delete(request.user, serializer.validated_data['ids']))


@extend_schema(
    tags=['Admin - Roles'],
    summary='Role options',
    description='Compact id/name list for select inputs. **Required permission:** `roles.manage`',
    parameters=[GUARD_PARAMETER],
    responses={200: OpenApiTypes.OBJECT}
)
@requires_permissions('roles.manage')
class RoleOptionsView(APIView):
    """
    GET /v1/admin/roles/list/
    """
    permission_classes = [HasPermissions]

    def get(self, request):
        return Response({'roles': RoleService.options(request.query_params.get('guard_name') or None)})


# ===== PERMISSIONS =====

@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Permissions'],
        summary='List permissions',
        description='**Required permission:** `permissions.manage`',
        parameters=LIST_PARAMETERS + [GUARD_PARAMETER],
        responses={200: PermissionSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['Admin - Permissions'],
        summary='Create permission',
        description='''
**Required permission:** `permissions.manage`

`roles` is an optional list of role ids to grant the permission to.
        ''',
        request=PermissionWriteSerializer,
        responses={201: PermissionSerializer, 400: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('permissions.manage')
class PermissionListView(APIView):
    """
    GET /v1/admin/permissions/
    POST /v1/admin/permissions/
    """
    permission_classes = [HasPermissions]

    def get(self, request):
        guard_name = request.query_params.get('guard_name') or None
        params = parse_list_params(request.query_params, PermissionService.SORTS)
        queryset = PermissionService.paginate(params, guard_name=guard_name)
        return paginated_response(
            request, queryset, PermissionSerializer, LargeResultsSetPagination,
            extra={'total': PermissionService.total_count(guard_name)}
        )

    def post(self, request):
        serializer = PermissionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        permission = PermissionService.create(serializer.validated_data)
        return Response(PermissionSerializer(permission).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Permissions'],
        summary='Get permission',
        responses={200: PermissionSerializer, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['Admin - Permissions'],
        summary='Update permission',
        request=PermissionWriteSerializer,
        responses={200: PermissionSerializer, 422: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['Admin - Permissions'],
        summary='Delete permission',
        responses={204: None, 404: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('permissions.manage')
class PermissionDetailView(APIView):
    """
    GET /v1/admin/permissions/{id}/
    PUT /v1/admin/permissions/{id}/
    DELETE /v1/admin/permissions/{id}/
    """
    permission_classes = [HasPermissions]

    def get(self, request, permission_id):
        return Response(PermissionSerializer(RBACService.find_permission(permission_id)).data)

    def put(self, request, permission_id):
        permission = RBACService.find_permission(permission_id)
        serializer = PermissionWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        PermissionService.update(permission, serializer.validated_data)
        return Response(PermissionSerializer(RBACService.find_permission(permission.id)).data)

    def delete(self, request, permission_id):
        PermissionService.delete(RBACService.find_permission(permission_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Admin - Permissions'],
    summary='Bulk delete permissions',
    request=BulkIdsSerializer,
    responses={200: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
)
@requires_permissions('permissions.manage')
class PermissionBulkDeleteView(APIView):
    """
    DELETE /v1/admin/permissions/bulk/
    """
    permission_classes = [HasPermissions]

    def delete(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted = PermissionService.bulk_delete(serializer.validated_data['ids'])
        return Response({'deleted': deleted})


@extend_schema(
    tags=['Admin - Permissions'],
    summary='Permission options',
    description='Compact id/name list for the role editor. **Required permission:** `roles.manage`',
    parameters=[GUARD_PARAMETER],
    responses={200: OpenApiTypes.OBJECT}
)
@requires_permissions('roles.manage')
class PermissionOptionsView(APIView):
    """
    GET /v1/admin/permissions/list/
    """
    permission_classes = [HasPermissions]

    def get(self, request):
        return Response({'permissions': PermissionService.options(request.query_params.get('guard_name') or None)})
