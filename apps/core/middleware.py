"""
Core middleware for request processing.
"""
import uuid
import logging
import threading
import time
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_local = threading.local()

SLOW_REQUEST_SECONDS = 1.0


class RequestIDMiddleware(MiddlewareMixin):
    """
    Tag each request with a request_id and log its outcome.

    The id comes from an incoming X-Request-ID header or is generated, is
    echoed back on the response and is attached to every log record
    emitted while the request is handled.
    """

    def process_request(self, request):
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        request._started_at = time.monotonic()
        _local.request_id = request_id

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id

        started_at = getattr(request, '_started_at', None)
        if started_at is not None:
            duration = time.monotonic() - started_at
            user = getattr(request, 'user', None)
            extra = {
                'method': request.method,
                'path': request.path,
                'status_code': response.status_code,
                'duration_ms': round(duration * 1000, 2),
                'user_id': user.id if user is not None and user.is_authenticated else None,
            }
            if duration >= SLOW_REQUEST_SECONDS:
                logger.warning("Slow request", extra=extra)
            else:
                logger.debug("Request completed", extra=extra)

        _local.request_id = None
        return response


class LoggingFilter(logging.Filter):
    """
    Add the current request_id to log records.
    """

    def filter(self, record):
        request_id = getattr(_local, 'request_id', None)
        if request_id and not hasattr(record, 'request_id'):
            record.request_id = request_id
        return True
