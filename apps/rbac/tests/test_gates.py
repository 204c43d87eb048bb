"""
Tests for the authorization gates.
"""
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from apps.core.exceptions import (
    CompanyFrozen,
    OwnerRequired,
    PermissionCheckError,
    PermissionDenied,
    Unauthorized,
    UserInactive,
)
from apps.rbac import gates
from apps.rbac.principals import CompanyUserPrincipal


def freeze(company):
    company.is_frozen = True
    company.save()


@pytest.mark.django_db
class TestRequirePermission:

    def test_unauthenticated(self):
        with pytest.raises(Unauthorized):
            gates.require_permission(None, 'orders', 'view_all_orders')

    def test_owner_passes(self, owner_principal, company):
        freeze(company)
        assert gates.require_permission(owner_principal, 'orders', 'view_all_orders') is owner_principal

    def test_granted_user_passes(self, admin_user, principal_for):
        principal = principal_for(admin_user)
        assert gates.require_permission(principal, 'orders', 'view_all_orders') is principal

    def test_frozen_company_blocks_before_resolution(self, company, admin_user, principal_for):
        freeze(company)
        with pytest.raises(CompanyFrozen):
            gates.require_permission(principal_for(admin_user), 'orders', 'view_all_orders')

    def test_inactive_user(self, company, make_user, admin_role):
        user = make_user(company, 'gone@acme.test', role=admin_role, is_active=False)
        principal = CompanyUserPrincipal(id=user.id, company_id=company.id)

        with pytest.raises(UserInactive):
            gates.require_permission(principal, 'orders', 'view_all_orders')

    def test_denial_names_required_permission(self, staff_user, catalog, principal_for):
        with pytest.raises(PermissionDenied) as exc_info:
            gates.require_permission(principal_for(staff_user), 'orders', 'view_all_orders', path='/x')

        error = exc_info.value
        assert error.required == ('orders', 'view_all_orders')
        assert error.as_dict()['required_permission'] == {'module': 'orders', 'permission': 'view_all_orders'}
        assert error.status_code == 403


@pytest.mark.django_db
class TestBatchGates:

    def test_any_passes_with_one_match(self, admin_user, principal_for):
        pairs = [('salaries', 'view_salaries'), ('orders', 'view_all_orders')]
        gates.require_any_permission(principal_for(admin_user), pairs)

    def test_any_denied_names_every_candidate(self, staff_user, catalog, principal_for):
        pairs = [('orders', 'view_all_orders'), ('orders', 'view_statistics')]

        with pytest.raises(PermissionDenied) as exc_info:
            gates.require_any_permission(principal_for(staff_user), iter(pairs))

        error = exc_info.value
        assert error.code == 'PERMISSION_DENIED'
        assert error.required_any == tuple(pairs)
        assert error.as_dict()['required_permissions'] == [
            {'module': 'orders', 'permission': 'view_all_orders'},
            {'module': 'orders', 'permission': 'view_statistics'},
        ]

    def test_any_checks_frozen_company(self, company, admin_user, principal_for):
        freeze(company)
        with pytest.raises(CompanyFrozen):
            gates.require_any_permission(principal_for(admin_user), [('orders', 'view_all_orders')])

    def test_all_reports_first_missing_pair(self, admin_user, principal_for):
        pairs = [('orders', 'view_all_orders'), ('salaries', 'view_salaries'), ('bills', 'view_bills')]

        with pytest.raises(PermissionDenied) as exc_info:
            gates.require_all_permissions(principal_for(admin_user), pairs)

        assert exc_info.value.missing == ('salaries', 'view_salaries')
        assert exc_info.value.as_dict()['missing_permission'] == {
            'module': 'salaries', 'permission': 'view_salaries'
        }

    def test_all_owner_passes(self, owner_principal):
        gates.require_all_permissions(owner_principal, [('a', 'b'), ('c', 'd')])


@pytest.mark.django_db
class TestRequireOwner:

    def test_owner_passes(self, owner_principal, company):
        gates.require_owner(owner_principal, company_id=company.id)

    def test_company_user_rejected(self, admin_user, company, principal_for):
        with pytest.raises(OwnerRequired):
            gates.require_owner(principal_for(admin_user), company_id=company.id)

    def test_registered_owner_accepted(self, company, staff_user, principal_for):
        company.registered_owner_user = staff_user
        company.save()

        gates.require_owner(principal_for(staff_user), company_id=company.id)

    def test_registered_owner_must_belong_to_company(self, other_company, staff_user, principal_for):
        other_company.registered_owner_user = staff_user
        other_company.save()

        with pytest.raises(OwnerRequired):
            gates.require_owner(principal_for(staff_user), company_id=other_company.id)

    def test_unauthenticated(self):
        with pytest.raises(Unauthorized):
            gates.require_owner(None)


@pytest.mark.django_db
class TestFailClosed:

    def test_store_failure_becomes_permission_check_error(self, admin_user, principal_for):
        with patch(
            'apps.rbac.gates.PermissionResolver.has_permission',
            side_effect=DatabaseError('connection lost'),
        ):
            with pytest.raises(PermissionCheckError) as exc_info:
                gates.require_permission(principal_for(admin_user), 'orders', 'view_all_orders')

        assert exc_info.value.status_code == 500
        assert 'connection lost' not in exc_info.value.message


@pytest.mark.django_db
class TestAttachUserPermissions:

    def test_owner_wildcard(self, owner_principal):
        assert gates.attach_user_permissions(owner_principal) == ['*.*']

    def test_company_user_keys(self, admin_user, principal_for):
        keys = gates.attach_user_permissions(principal_for(admin_user))
        assert keys == sorted([
            'orders.view_all_orders',
            'products.create_product',
            'roles.assign_permissions',
            'roles.manage_roles',
            'users.assign_roles',
        ])
