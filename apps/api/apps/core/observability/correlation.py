"""
Request correlation middleware.

Generates/propagates X-Request-ID and keeps request context in
thread-local storage so log records can be correlated.
"""
import logging
import time
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

_request_context = local()

logger = logging.getLogger(__name__)

_CONTEXT_ATTRIBUTES = ('request_id', 'trace_id', 'user_id', 'user_role')


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def get_trace_id():
    return getattr(_request_context, 'trace_id', None)


def get_user_id():
    return getattr(_request_context, 'user_id', None)


def get_user_role():
    return getattr(_request_context, 'user_role', None)


def bind_user(user_id, role):
    """Record the acting identity once it is resolved (see authz.context)."""
    _request_context.user_id = str(user_id) if user_id else None
    _request_context.user_role = role


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    - Generates or propagates X-Request-ID
    - Propagates X-Trace-ID when the caller sends one
    - Logs completion with duration and status code
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'

    def process_request(self, request):
        clear_request_context()

        request.request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.trace_id = request.META.get(self.TRACE_ID_HEADER)
        request.start_time = time.time()

        _request_context.request_id = request.request_id
        _request_context.trace_id = request.trace_id

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        if getattr(request, 'trace_id', None):
            response['X-Trace-ID'] = request.trace_id

        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000
            logger.info(
                'Request completed',
                extra={
                    'event': 'http_request_completed',
                    'path': request.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round(duration_ms, 2),
                }
            )

        return response

    def process_exception(self, request, exception):
        duration_ms = 0
        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000

        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'path': request.path,
                'method': request.method,
                'exception_type': exception.__class__.__name__,
                'duration_ms': round(duration_ms, 2),
            }
        )


def clear_request_context():
    """Clear thread-local request context (also used by tests)."""
    for attr in _CONTEXT_ATTRIBUTES:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)
