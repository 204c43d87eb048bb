"""
Core middleware for request processing.
"""
import uuid
import logging
import threading
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

# Per-thread request context consumed by RequestContextFilter
_context = threading.local()


def set_request_context(**values):
    """Store request-scoped ids (request_id, company_id, principal_id) for logging."""
    for key, value in values.items():
        setattr(_context, key, str(value) if value is not None else None)


def clear_request_context():
    _context.__dict__.clear()


def current_request_id():
    return getattr(_context, 'request_id', None)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object and to log records.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        clear_request_context()
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        set_request_context(request_id=request_id)

    def process_response(self, request, response):
        """Add request_id to response headers."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        clear_request_context()
        return response


class RequestContextFilter(logging.Filter):
    """
    Add request_id, company_id and principal_id to log records
    from thread-local storage.
    """

    def filter(self, record):
        for attr in ('request_id', 'company_id', 'principal_id'):
            if getattr(record, attr, None) is None:
                setattr(record, attr, getattr(_context, attr, None))
        return True
