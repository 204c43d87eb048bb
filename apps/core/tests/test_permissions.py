"""
Tests for the DRF permission classes and requirement decorators.
"""
import pytest
from rest_framework.test import APIRequestFactory
from rest_framework.views import APIView

from apps.core.exceptions import PermissionDenied, Unauthorized
from apps.core.permissions import (
    AttachUserPermissions,
    HasModulePermission,
    requires_all_permissions,
    requires_any_permission,
    requires_permission,
)


@requires_any_permission(('orders', 'view_all_orders'), ('orders', 'view_statistics'))
class OrderView(APIView):

    @requires_permission('orders', 'create_order')
    def post(self, request):
        pass

    def get(self, request):
        pass


@requires_all_permissions(('roles', 'manage_roles'), ('salaries', 'view_salaries'))
class PayrollView(APIView):

    def get(self, request):
        pass


def request_for(method, principal):
    request = getattr(APIRequestFactory(), method)('/api/v1/orders')
    request.principal = principal
    return request


@pytest.mark.django_db
class TestHasModulePermission:

    def test_class_level_any_of(self, admin_user, principal_for):
        request = request_for('get', principal_for(admin_user))
        assert HasModulePermission().has_permission(request, OrderView())

    def test_method_requirement_wins(self, admin_user, principal_for):
        request = request_for('post', principal_for(admin_user))

        with pytest.raises(PermissionDenied) as exc_info:
            HasModulePermission().has_permission(request, OrderView())

        assert exc_info.value.required == ('orders', 'create_order')

    def test_all_of_reports_missing(self, admin_user, principal_for):
        request = request_for('get', principal_for(admin_user))

        with pytest.raises(PermissionDenied) as exc_info:
            HasModulePermission().has_permission(request, PayrollView())

        assert exc_info.value.missing == ('salaries', 'view_salaries')

    def test_no_principal(self):
        with pytest.raises(Unauthorized):
            HasModulePermission().has_permission(request_for('get', None), OrderView())

    def test_owner_passes_everything(self, owner_principal):
        assert HasModulePermission().has_permission(request_for('post', owner_principal), OrderView())
        assert HasModulePermission().has_permission(request_for('get', owner_principal), PayrollView())


@pytest.mark.django_db
class TestAttachUserPermissions:

    def test_attaches_resolved_keys(self, admin_user, principal_for):
        request = request_for('get', principal_for(admin_user))

        assert AttachUserPermissions().has_permission(request, OrderView())
        assert 'orders.view_all_orders' in request.user_permissions

    def test_anonymous_gets_empty_list(self):
        request = request_for('get', None)
        AttachUserPermissions().has_permission(request, OrderView())
        assert request.user_permissions == []
