"""
Auth context middleware.

Resolves the Bearer JWT into request.user and snapshots the user's
effective permissions on request.permissions for the rest of the request.
"""
import logging
from django.contrib.auth.models import AnonymousUser
from django.utils.deprecation import MiddlewareMixin

from apps.rbac.services import AuthService, RBACService

logger = logging.getLogger(__name__)


class AuthContextMiddleware(MiddlewareMixin):
    """
    Attach the acting user and their permission snapshot to the request.

    This middleware:
    1. Extracts the `Authorization: Bearer <jwt>` header
    2. Resolves it to an active, non-deleted user
    3. Attaches request.user and request.permissions

    Missing or invalid tokens leave the request anonymous; the DRF
    permission classes answer those with 401.
    """

    PUBLIC_PATHS = [
        '/v1/health',
        '/schema',
    ]

    def process_request(self, request):
        # None until resolved; HasPermissions resolves it lazily for users
        # authenticated another way.
        request.permissions = None

        if self._is_public_path(request.path):
            return None

        token = self._bearer_token(request)
        if not token:
            request.user = AnonymousUser()
            return None

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            logger.info(
                "Invalid or expired token",
                extra={'request_id': getattr(request, 'request_id', None), 'path': request.path}
            )
            request.user = AnonymousUser()
            return None

        request.user = user
        request.permissions = RBACService.effective_permissions(user)

        logger.debug(
            f"Auth context set for user {user.id} with {len(request.permissions)} permissions",
            extra={'request_id': getattr(request, 'request_id', None)}
        )
        return None

    def _bearer_token(self, request):
        header = request.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        return header[len('Bearer '):].strip() or None

    def _is_public_path(self, path):
        """Check if path is public and doesn't require authentication."""
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)
