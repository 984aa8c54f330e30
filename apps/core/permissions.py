"""
DRF permission classes and decorators for permission enforcement.

This module provides:
- HasPermissions: DRF permission class that enforces permission requirements
- @requires_permissions: Decorator to declare required permissions on views
"""
import logging
from functools import wraps
from rest_framework.exceptions import NotAuthenticated
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


def get_request_permissions(request):
    """
    Return the acting user's effective permission snapshot for this request.

    AuthContextMiddleware resolves it once per request; requests that were
    authenticated some other way (e.g. force_authenticate in tests) get it
    resolved here and memoized on the request.
    """
    permissions = getattr(request, 'permissions', None)
    if permissions is not None:
        return permissions

    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return frozenset()

    from apps.rbac.services import RBACService
    permissions = RBACService.effective_permissions(user)
    django_request = getattr(request, '_request', request)
    django_request.permissions = permissions
    return permissions


class HasPermissions(BasePermission):
    """
    DRF permission class that enforces permission requirements on API endpoints.

    This permission class:
    1. Rejects anonymous requests with 401
    2. Checks the view's required_permissions against request.permissions
    3. Verifies owned objects belong to the acting user

    Usage in views:
        class NoteListView(APIView):
            permission_classes = [HasPermissions]
            required_permissions = ['notes.view']

    Or with the decorator:
        @requires_permissions('notes.view')
        class NoteListView(APIView):
            ...
    """

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            raise NotAuthenticated()

        required = getattr(view, 'required_permissions', None)
        if not required:
            return True

        if isinstance(required, str):
            required = {required}
        else:
            required = set(required)

        granted = get_request_permissions(request)
        missing = required - granted

        if missing:
            logger.warning(
                f"Permission denied: user {user.id} missing permissions: {sorted(missing)}",
                extra={
                    'user_id': user.id,
                    'required_permissions': sorted(required),
                    'missing_permissions': sorted(missing),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            from apps.core.logging import SecurityLogger
            SecurityLogger.log_permission_denied(
                user,
                missing,
                ip_address=request.META.get('REMOTE_ADDR'),
            )
            return False

        return True

    def has_object_permission(self, request, view, obj):
        """
        Verify that an owned object belongs to the acting user.

        Objects without an owner_id (roles, permissions, users) are
        governed by policies instead and pass through.
        """
        if not hasattr(obj, 'owner_id'):
            return True

        if obj.owner_id != request.user.id:
            logger.warning(
                "Object permission denied: object belongs to another user",
                extra={
                    'user_id': request.user.id,
                    'object_type': obj.__class__.__name__,
                    'object_id': obj.pk,
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True


def requires_permissions(*permissions):
    """
    Decorator to declare required permissions on view classes or methods.

    On a class it sets required_permissions for every method. On a
    method it registers the requirement for that HTTP method only;
    HasPermissions reads it before the handler runs.

    Usage:
        @requires_permissions('roles.manage')
        class RoleListView(APIView):
            ...

        class NoteDetailView(APIView):
            @requires_permissions('notes.view')
            def get(self, request, note_id):
                ...

            @requires_permissions('notes.update')
            def put(self, request, note_id):
                ...
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_permissions = frozenset(permissions)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_permissions = frozenset(permissions)
        return wrapped

    return decorator


class MethodPermissionsMixin:
    """
    Resolve required_permissions from the handler for the current HTTP method.

    Lets views decorate individual methods with @requires_permissions.
    """

    def check_permissions(self, request):
        handler = getattr(self, request.method.lower(), None)
        method_permissions = getattr(handler, 'required_permissions', None)
        if method_permissions is not None:
            self.required_permissions = method_permissions
        super().check_permissions(request)
