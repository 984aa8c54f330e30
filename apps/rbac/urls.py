"""
RBAC admin API URLs.

Provides endpoints for:
- User management
- Role management
- Permission management
"""
from django.urls import path
from apps.rbac.views import (
    UserListView,
    UserDetailView,
    UserBulkDeleteView,
    UserVerifyView,
    RoleListView,
    RoleDetailView,
    RoleBulkDeleteView,
    RoleOptionsView,
    PermissionListView,
    PermissionDetailView,
    PermissionBulkDeleteView,
    PermissionOptionsView,
)

app_name = 'rbac'

urlpatterns = [
    # Users
    path('users/', UserListView.as_view(), name='user-list'),
    path('users/bulk/', UserBulkDeleteView.as_view(), name='user-bulk-delete'),
    path('users/<int:user_id>/', UserDetailView.as_view(), name='user-detail'),
    path('users/<int:user_id>/verify/', UserVerifyView.as_view(), name='user-verify'),

    # Roles
    path('roles/', RoleListView.as_view(), name='role-list'),
    path('roles/bulk/', RoleBulkDeleteView.as_view(), name='role-bulk-delete'),
    path('roles/list/', RoleOptionsView.as_view(), name='role-options'),
    path('roles/<int:role_id>/', RoleDetailView.as_view(), name='role-detail'),

    # Permissions
    path('permissions/', PermissionListView.as_view(), name='permission-list'),
    path('permissions/bulk/', PermissionBulkDeleteView.as_view(), name='permission-bulk-delete'),
    path('permissions/list/', PermissionOptionsView.as_view(), name='permission-options'),
    path('permissions/<int:permission_id>/', PermissionDetailView.as_view(), name='permission-detail'),
]
