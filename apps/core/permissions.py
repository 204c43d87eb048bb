"""
DRF permission classes and decorators for module permission enforcement.

This module provides:
- IsActiveAccount: rejects unauthenticated requests, frozen companies and inactive users
- HasModulePermission: enforces requirements declared with the decorators
- IsOwner: owner-only endpoints
- AttachUserPermissions: exposes request.user_permissions to the view
- @requires_permission / @requires_any_permission / @requires_all_permissions
"""
import logging
from rest_framework.permissions import BasePermission

from apps.rbac import gates

logger = logging.getLogger(__name__)


def _principal(request):
    return getattr(request, 'principal', None)


class IsActiveAccount(BasePermission):
    """Authenticated principal whose company is not frozen and whose account is active."""

    def has_permission(self, request, view):
        gates.require_active_account(_principal(request))
        return True


class HasModulePermission(BasePermission):
    """
    DRF permission class that enforces declared module permissions.

    Requirements are looked up on the handler method for the current
    HTTP method first, then on the view class:

        @requires_permission('roles', 'manage_roles')
        class RoleDetailView(APIView):
            permission_classes = [HasModulePermission]

        class OrderListView(APIView):
            permission_classes = [HasModulePermission]

            @requires_any_permission(('orders', 'view_all_orders'), ('orders', 'view_statistics'))
            def get(self, request):
                pass

    Gates raise ClientDeskError subclasses, which the exception handler
    renders; returning False is never used.
    """

    def has_permission(self, request, view):
        principal = _principal(request)
        handler = getattr(view, request.method.lower(), None)

        single = _requirement(handler, view, 'required_permission')
        any_of = _requirement(handler, view, 'any_permissions')
        all_of = _requirement(handler, view, 'all_permissions')

        if single:
            gates.require_permission(principal, *single, path=request.path)
        elif any_of:
            gates.require_any_permission(principal, any_of, path=request.path)
        elif all_of:
            gates.require_all_permissions(principal, all_of, path=request.path)
        else:
            gates.require_authenticated(principal)

        return True


class IsOwner(BasePermission):
    """Owner-only endpoints. Uses the ``company_id`` URL kwarg for the legacy owner check."""

    def has_permission(self, request, view):
        company_id = view.kwargs.get('company_id') if hasattr(view, 'kwargs') else None
        gates.require_owner(_principal(request), company_id=company_id)
        return True


class AttachUserPermissions(BasePermission):
    """
    Read-only enrichment, not a gate: computes the caller's resolved
    permission set and stores it on request.user_permissions.
    """

    def has_permission(self, request, view):
        principal = _principal(request)
        request.user_permissions = gates.attach_user_permissions(principal) if principal else []
        return True


def _requirement(handler, view, attr):
    value = getattr(handler, attr, None)
    if value is None:
        value = getattr(view, attr, None)
    return value


def _declare(attr, value):
    def decorator(view_or_method):
        setattr(view_or_method, attr, value)
        return view_or_method
    return decorator


def requires_permission(module_key, permission_key):
    """
    Declare a single required (module, permission) pair on a view class or handler.
    """
    return _declare('required_permission', (module_key, permission_key))


def requires_any_permission(*pairs):
    """Pass when any of the (module, permission) pairs resolves true."""
    return _declare('any_permissions', tuple(pairs))


def requires_all_permissions(*pairs):
    """Pass only when every pair resolves true; the first failing pair is reported."""
    return _declare('all_permissions', tuple(pairs))
