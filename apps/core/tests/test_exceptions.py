"""
Tests for the error taxonomy and the DRF exception handler.
"""
from django.http import Http404
from rest_framework.exceptions import NotAuthenticated, ValidationError
from rest_framework.test import APIRequestFactory

from apps.core.exceptions import (
    AuthError,
    ExpiredCredential,
    PermissionDenied,
    RoleInUse,
    custom_exception_handler,
)


def handle(exc, request_id='req-1'):
    request = APIRequestFactory().get('/api/v1/rbac/roles')
    request.request_id = request_id
    return custom_exception_handler(exc, {'request': request})


class TestErrorTaxonomy:

    def test_auth_errors_share_a_base(self):
        assert issubclass(ExpiredCredential, AuthError)
        assert ExpiredCredential().status_code == 401
        assert ExpiredCredential().code == 'EXPIRED_CREDENTIAL'

    def test_permission_denied_details(self):
        error = PermissionDenied('nope', required=('orders', 'create_order'))

        assert error.as_dict() == {
            'code': 'PERMISSION_DENIED',
            'message': 'nope',
            'required_permission': {'module': 'orders', 'permission': 'create_order'},
        }

    def test_role_in_use_count(self):
        error = RoleInUse(3)
        assert error.as_dict()['user_count'] == 3
        assert '3 user(s)' in error.message


class TestExceptionHandler:

    def test_clientdesk_error(self):
        response = handle(RoleInUse(2))

        assert response.status_code == 400
        assert response.data == {
            'success': False,
            'error': RoleInUse(2).as_dict(),
            'request_id': 'req-1',
        }

    def test_not_authenticated_is_401(self):
        response = handle(NotAuthenticated())

        assert response.status_code == 401
        assert response.data['error']['code'] == 'UNAUTHORIZED'

    def test_validation_error_lists_fields(self):
        response = handle(ValidationError({'role_key': ['This field is required.']}))

        assert response.status_code == 400
        assert response.data['error']['fields'] == {'role_key': ['This field is required.']}

    def test_http404(self):
        response = handle(Http404())

        assert response.status_code == 404
        assert response.data['error']['code'] == 'NOT_FOUND'

    def test_unexpected_error_does_not_leak(self, settings):
        settings.DEBUG = False
        response = handle(RuntimeError('database password is hunter2'))

        assert response.status_code == 500
        assert response.data['error'] == {
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred',
        }
