"""
Domain exceptions and the DRF exception handler.

Services raise the HubException subclasses below; the handler turns them
into `{"error": {"code", "message", "details"}}` responses.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse

logger = logging.getLogger(__name__)

LOGIN_RETRY_AFTER = 60
DEFAULT_RETRY_AFTER = 60


class HubException(Exception):
    """Base exception for Notes Hub domain errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(HubException):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'AUTHENTICATION_FAILED'


class Forbidden(HubException):
    """Raised when a permission, ownership or policy check fails."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'


class NotFound(HubException):
    """Raised when a referenced entity does not exist in the caller's scope."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class ConflictOnWrite(HubException):
    """Raised when a concurrent mutation invalidated an atomic write."""
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'


class UnsupportedFileType(HubException):
    """Raised when a file cannot be rendered as text."""
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = 'UNSUPPORTED_FILE_TYPE'


class ValidationFailed(HubException):
    """Raised when input is well-formed JSON but violates a business rule."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = 'VALIDATION_FAILED'


def _retry_after_for(path):
    if path and '/auth/login' in path:
        return LOGIN_RETRY_AFTER
    return DEFAULT_RETRY_AFTER


def ratelimit_view(request, exception):
    """
    Custom view for django-ratelimit to return 429 instead of 403.

    This is called when rate limit is exceeded with block=True.
    Returns 429 with Retry-After header indicating when to retry.
    """
    from apps.core.logging import SecurityLogger

    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    retry_after = _retry_after_for(request.path)

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=ip_address,
        limit='Rate limit exceeded'
    )

    response = JsonResponse(
        {
            'error': {
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
            },
            'retry_after': retry_after,
        },
        status=429
    )

    # Add Retry-After header (RFC 6585)
    response['Retry-After'] = str(retry_after)

    return response


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        from apps.core.logging import SecurityLogger

        ip_address = request.META.get('REMOTE_ADDR', 'unknown') if request else 'unknown'
        retry_after = _retry_after_for(request.path if request else None)

        SecurityLogger.log_rate_limit_exceeded(
            endpoint=request.path if request else 'unknown',
            ip_address=ip_address,
            limit='Rate limit exceeded'
        )

        response = Response(
            {
                'error': {
                    'code': 'RATE_LIMIT_EXCEEDED',
                    'message': 'Rate limit exceeded. Please try again later.',
                },
                'request_id': request_id,
                'retry_after': retry_after,
            },
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(retry_after)
        return response

    if isinstance(exc, HubException):
        logger.warning(
            f"Domain error: {exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
                'error_code': exc.code,
            }
        )
        error = {
            'code': exc.code,
            'message': exc.message,
        }
        if exc.details:
            error['details'] = exc.details
        return Response(
            {
                'error': error,
                'request_id': request_id,
            },
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'status_code': response.status_code,
        }
    )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
