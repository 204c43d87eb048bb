"""
Pytest configuration and fixtures.
"""
from io import StringIO

import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    django.setup()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def token_config():
    from apps.rbac.authentication import TokenConfig
    return TokenConfig.from_settings()


@pytest.fixture
def catalog(db):
    """Seed the permission catalog and return it keyed by "module.permission"."""
    from apps.rbac.models import Permission
    call_command('seed_permissions', stdout=StringIO())
    return {p.code: p for p in Permission.objects.select_related('module')}


@pytest.fixture
def owner(db):
    """Create the Owner identity."""
    from apps.rbac.models import Owner
    return Owner.objects.create(email='owner@clientdesk.test', first_name='Olive', last_name='Owner')


@pytest.fixture
def company(db, owner):
    """Create a test company."""
    from apps.companies.models import Company
    return Company.objects.create(owner=owner, name='Acme Ltd', email='info@acme.test')


@pytest.fixture
def other_company(db, owner):
    """Create another company for isolation tests."""
    from apps.companies.models import Company
    return Company.objects.create(owner=owner, name='Globex Ltd', email='info@globex.test')


@pytest.fixture
def make_user(db):
    """Factory for company users."""
    from apps.rbac.models import CompanyUser

    def _make_user(company, email, role=None, is_active=True):
        return CompanyUser.objects.create(
            company=company,
            email=email,
            first_name=email.split('@')[0].title(),
            assigned_role=role,
            is_active=is_active,
        )
    return _make_user


@pytest.fixture
def make_role(db):
    """Factory for roles bound to catalog permissions."""
    from apps.rbac.models import Role, RolePermission

    def _make_role(company, role_key, permissions=(), can_grant=False, **fields):
        role = Role.objects.create(
            company=company,
            role_key=role_key,
            role_name=fields.pop('role_name', role_key.replace('_', ' ').title()),
            **fields
        )
        for permission in permissions:
            RolePermission.objects.create(role=role, permission=permission, can_grant=can_grant)
        return role
    return _make_role


@pytest.fixture
def owner_principal(owner):
    from apps.rbac.principals import OwnerPrincipal
    return OwnerPrincipal(id=owner.id)


@pytest.fixture
def principal_for():
    """Build the principal the resolver would produce for a company user."""
    from apps.rbac.principals import CompanyUserPrincipal

    def _principal_for(user):
        return CompanyUserPrincipal(id=user.id, company_id=user.company_id, is_active=user.is_active)
    return _principal_for


@pytest.fixture
def admin_role(make_role, company, catalog):
    """Company role holding every management permission, delegable."""
    return make_role(
        company,
        'admin',
        permissions=[
            catalog['roles.manage_roles'],
            catalog['roles.assign_permissions'],
            catalog['users.assign_roles'],
            catalog['orders.view_all_orders'],
            catalog['products.create_product'],
        ],
        can_grant=True,
        hierarchy_level=100,
    )


@pytest.fixture
def admin_user(make_user, company, admin_role):
    return make_user(company, 'admin@acme.test', role=admin_role)


@pytest.fixture
def staff_user(make_user, company):
    """Company user without any role."""
    return make_user(company, 'staff@acme.test')


@pytest.fixture
def auth_client(token_config):
    """Factory returning an APIClient carrying a bearer credential for a principal."""
    from rest_framework.test import APIClient
    from apps.rbac.authentication import issue_token

    def _auth_client(principal):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_token(principal, token_config)}')
        return client
    return _auth_client
