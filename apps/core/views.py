"""
Core API views.
"""
import logging

from django.core.cache import cache
from django.core.files.storage import default_storage
from django.db import connection
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.dashboard import DashboardService
from apps.core.permissions import HasPermissions, get_request_permissions

logger = logging.getLogger(__name__)

HEALTH_SCHEMA = {
    'type': 'object',
    'properties': {
        'status': {'type': 'string'},
        'database': {'type': 'string'},
        'cache': {'type': 'string'},
        'storage': {'type': 'string'},
        'errors': {'type': 'array', 'items': {'type': 'string'}},
    }
}

DAILY_SERIES_SCHEMA = {
    'type': 'array',
    'items': {
        'type': 'object',
        'properties': {
            'date': {'type': 'string', 'format': 'date'},
            'label': {'type': 'string'},
            'value': {'type': 'integer'},
        }
    }
}

DASHBOARD_SCHEMA = {
    'type': 'object',
    'properties': {
        'is_admin': {'type': 'boolean'},
        'stats': {
            'type': 'object',
            'properties': {
                'users': {'type': 'integer', 'nullable': True},
                'roles': {'type': 'integer', 'nullable': True},
                'permissions': {'type': 'integer', 'nullable': True},
                'notes': {'type': 'integer'},
                'note_folders': {'type': 'integer'},
                'files': {'type': 'integer'},
                'file_folders': {'type': 'integer'},
                'storage_bytes': {'type': 'integer'},
            }
        },
        'series': {
            'type': 'object',
            'properties': {
                'notes_last_7d': DAILY_SERIES_SCHEMA,
                'files_last_7d': DAILY_SERIES_SCHEMA,
            }
        },
        'recent': {
            'type': 'object',
            'properties': {
                'notes': {'type': 'array', 'items': {'type': 'object'}},
                'files': {'type': 'array', 'items': {'type': 'object'}},
            }
        },
        'top': {
            'type': 'object',
            'properties': {
                'mimes': {
                    'type': 'array',
                    'items': {
                        'type': 'object',
                        'properties': {'mime': {'type': 'string'}, 'count': {'type': 'integer'}},
                    }
                },
            }
        },
    }
}


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /v1/health/

    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['Health'],
        summary="Health check",
        description="Check the database, the cache and the file storage",
        responses={200: HEALTH_SCHEMA, 503: HEALTH_SCHEMA}
    )
    def get(self, request):
        """Check health of all dependencies."""
        health_status = {
            'status': 'healthy',
            'database': 'unknown',
            'cache': 'unknown',
            'storage': 'unknown',
        }
        errors = []

        # Check database connectivity
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            health_status['database'] = 'healthy'
        except Exception as e:
            health_status['database'] = 'unhealthy'
            errors.append(f"Database: {str(e)}")
            logger.error("Database health check failed", exc_info=True)

        # Check cache connectivity (Redis or local memory)
        try:
            cache.set('health_check', 'ok', timeout=10)
            if cache.get('health_check') == 'ok':
                health_status['cache'] = 'healthy'
            else:
                health_status['cache'] = 'unhealthy'
                errors.append("Cache: Unable to read test key")
        except Exception as e:
            health_status['cache'] = 'unhealthy'
            errors.append(f"Cache: {str(e)}")
            logger.error("Cache health check failed", exc_info=True)

        # Check the file storage backing uploads
        try:
            default_storage.exists('user-files')
            health_status['storage'] = 'healthy'
        except Exception as e:
            health_status['storage'] = 'unhealthy'
            errors.append(f"Storage: {str(e)}")
            logger.error("Storage health check failed", exc_info=True)

        if errors:
            health_status['status'] = 'unhealthy'
            health_status['errors'] = errors
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)


class DashboardView(APIView):
    """
    Dashboard for the signed-in user.

    GET /v1/dashboard/

    Any authenticated user may read it. Note and file figures cover the
    caller's own content; user, role and permission counts are null
    unless the caller is an admin.
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Dashboard'],
        summary="Dashboard",
        description=(
            "Counts, storage usage, 7-day activity, recent items and top mime types "
            "for the caller's notes and files"
        ),
        responses={200: DASHBOARD_SCHEMA}
    )
    def get(self, request):
        payload = DashboardService.summary(request.user, get_request_permissions(request))
        return Response(payload, status=status.HTTP_200_OK)
