"""
Principal middleware.

Resolves the bearer credential on each request and attaches the
resulting principal, so DRF views and gates can read request.principal.
"""
import logging
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.core.exceptions import AuthError
from apps.core.logging import SecurityLogger
from apps.core.middleware import set_request_context
from apps.rbac.authentication import PrincipalResolver, TokenConfig

logger = logging.getLogger(__name__)


class PrincipalMiddleware(MiddlewareMixin):
    """
    Attach request.principal from the Authorization header.

    This middleware:
    1. Leaves request.principal = None when no bearer credential is sent
       (gates reject such requests with UNAUTHORIZED)
    2. Resolves the credential through PrincipalResolver
    3. Answers 401 with the specific AuthError code when resolution fails
    4. Copies principal and company ids into the logging context
    """

    # Paths that never carry credentials
    PUBLIC_PATHS = [
        '/health',
    ]

    def __init__(self, get_response=None):
        super().__init__(get_response)
        self.resolver = PrincipalResolver(TokenConfig.from_settings())

    def process_request(self, request):
        request.principal = None
        request.user_permissions = []

        if self._is_public_path(request.path):
            return None

        credential = self._bearer_credential(request)
        if credential is None:
            return None

        try:
            principal = self.resolver.resolve(credential)
        except AuthError as e:
            SecurityLogger.log_invalid_credential(e.code, request.META.get('REMOTE_ADDR'))
            return self._error_response(request, e)

        request.principal = principal
        set_request_context(principal_id=principal.id, company_id=principal.company_id)

        logger.debug(
            f"Principal resolved: {principal.kind.value} {principal.id}",
            extra={'request_id': getattr(request, 'request_id', None)}
        )
        return None

    def _is_public_path(self, path):
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)

    def _bearer_credential(self, request):
        header = request.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        return header[len('Bearer '):].strip()

    def _error_response(self, request, error):
        """Generate standardized error response."""
        return JsonResponse(
            {
                'success': False,
                'error': error.as_dict(),
                'request_id': getattr(request, 'request_id', None),
            },
            status=error.status_code
        )
