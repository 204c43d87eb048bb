"""
ClientDesk error taxonomy and the DRF exception handler.

Every service and gate raises one of the ClientDeskError subclasses below.
Each carries a stable ``code`` and a ``status_code`` hint; the HTTP layer
(custom_exception_handler) is the only place those hints become responses.
"""
import logging
from django.conf import settings
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    NotAuthenticated,
    AuthenticationFailed,
    PermissionDenied as DRFPermissionDenied,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ClientDeskError(Exception):
    """Base exception for ClientDesk-specific errors."""

    code = 'ERROR'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'An error occurred'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def as_dict(self):
        """Serializable representation used in error responses."""
        data = {'code': self.code, 'message': self.message}
        data.update(self.details)
        return data


class Unauthorized(ClientDeskError):
    """Raised when no valid principal is attached to the request."""
    code = 'UNAUTHORIZED'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Authentication required'


class AuthError(ClientDeskError):
    """Raised when a bearer credential cannot be turned into a principal."""
    code = 'AUTH_ERROR'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Authentication failed'


class InvalidCredential(AuthError):
    code = 'INVALID_CREDENTIAL'
    default_message = 'Invalid token'


class ExpiredCredential(AuthError):
    code = 'EXPIRED_CREDENTIAL'
    default_message = 'Token expired'


class PrincipalNotFound(AuthError):
    code = 'PRINCIPAL_NOT_FOUND'
    default_message = 'User not found or inactive'


class CompanyFrozen(ClientDeskError):
    """Raised when the acting company is suspended."""
    code = 'COMPANY_FROZEN'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Company is currently frozen. All operations are suspended.'


class UserInactive(ClientDeskError):
    code = 'USER_INACTIVE'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'User account is not active'


class PermissionDenied(ClientDeskError):
    """
    Raised when the permission resolver denies a check.

    ``required`` names the single permission a gate asked for;
    ``required_any`` lists the pairs of an any-of gate;
    ``missing`` names the first unmet permission of an all-of gate.
    Pairs are (module_key, permission_key) tuples.
    """
    code = 'PERMISSION_DENIED'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied. You don't have any of the required permissions."

    def __init__(self, message=None, required=None, missing=None, required_any=None):
        details = {}
        if required:
            details['required_permission'] = {'module': required[0], 'permission': required[1]}
        if required_any:
            details['required_permissions'] = [
                {'module': module, 'permission': permission} for module, permission in required_any
            ]
        if missing:
            details['missing_permission'] = {'module': missing[0], 'permission': missing[1]}
        self.required = required
        self.required_any = tuple(required_any) if required_any else None
        self.missing = missing
        super().__init__(message, details)


class OwnerRequired(ClientDeskError):
    code = 'OWNER_REQUIRED'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Access denied. Owner privileges required.'


class NotFound(ClientDeskError):
    code = 'NOT_FOUND'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found'


class DuplicateRoleKey(ClientDeskError):
    code = 'DUPLICATE_ROLE_KEY'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Role key already exists'


class Forbidden(ClientDeskError):
    """Raised when the caller lacks a management permission or the target is system-protected."""
    code = 'FORBIDDEN'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You do not have permission to perform this action'


class RoleInUse(ClientDeskError):
    code = 'ROLE_IN_USE'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, user_count):
        self.user_count = user_count
        super().__init__(
            f"Cannot delete role. {user_count} user(s) are assigned to this role. "
            f"Please reassign them first.",
            {'user_count': user_count},
        )


class BadRequest(ClientDeskError):
    code = 'BAD_REQUEST'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Bad request'


class PermissionCheckError(ClientDeskError):
    """Raised when a check could not be evaluated. Always fails closed."""
    code = 'PERMISSION_CHECK_ERROR'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Error checking permissions'


def _error_response(request_id, error, status_code):
    return Response(
        {
            'success': False,
            'error': error,
            'request_id': request_id,
        },
        status=status_code
    )


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    path = request.path if request else None
    method = request.method if request else None

    if isinstance(exc, ClientDeskError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"API error {exc.code}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': path,
                'method': method,
                'code': exc.code,
            }
        )
        return _error_response(request_id, exc.as_dict(), exc.status_code)

    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        # DRF renders these as 403 when no authenticate_header is offered
        return _error_response(request_id, Unauthorized().as_dict(), status.HTTP_401_UNAUTHORIZED)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, Http404):
            error = NotFound().as_dict()
        elif isinstance(exc, DRFPermissionDenied):
            error = Forbidden(str(exc.detail)).as_dict()
        elif isinstance(exc, APIException):
            error = {
                'code': str(exc.default_code).upper(),
                'message': 'Invalid request' if isinstance(exc.detail, (dict, list)) else str(exc.detail),
            }
            if isinstance(exc.detail, (dict, list)):
                error['fields'] = response.data
        else:
            error = {'code': 'ERROR', 'message': str(exc)}
        return _error_response(request_id, error, response.status_code)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': path,
            'method': method,
        },
        exc_info=True
    )

    # If DRF didn't handle it, return a generic 500 error
    return _error_response(
        request_id,
        {
            'code': 'INTERNAL_ERROR',
            'message': str(exc) if settings.DEBUG else 'An unexpected error occurred',
        },
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )
