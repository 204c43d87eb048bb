"""
API tests for the RBAC endpoints.

Exercises the full stack: RequestIDMiddleware, PrincipalMiddleware,
DRF gate classes, services and the exception handler.
"""
import pytest

from apps.rbac.models import AuditLogEntry, Role, RolePermission

ROLES_URL = '/api/v1/rbac/roles'


@pytest.fixture
def admin_client(auth_client, admin_user, principal_for):
    return auth_client(principal_for(admin_user))


@pytest.fixture
def staff_client(auth_client, staff_user, principal_for):
    return auth_client(principal_for(staff_user))


@pytest.fixture
def owner_client(auth_client, owner_principal):
    return auth_client(owner_principal)


@pytest.mark.django_db
class TestAuthentication:

    def test_health_is_public(self, api_client):
        response = api_client.get('/health')
        assert response.status_code == 200

    def test_missing_credential(self, api_client):
        response = api_client.get(ROLES_URL)

        assert response.status_code == 401
        assert response.json()['success'] is False
        assert response.json()['error']['code'] == 'UNAUTHORIZED'

    def test_invalid_credential(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-real-token')
        response = api_client.get(ROLES_URL)

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'INVALID_CREDENTIAL'

    def test_request_id_is_echoed(self, admin_client):
        response = admin_client.get(ROLES_URL, HTTP_X_REQUEST_ID='req-123')

        assert response['X-Request-ID'] == 'req-123'

    def test_error_carries_request_id(self, api_client):
        response = api_client.get(ROLES_URL, HTTP_X_REQUEST_ID='req-456')
        assert response.json()['request_id'] == 'req-456'


@pytest.mark.django_db
class TestRoleEndpoints:

    def test_create_role(self, admin_client, company, catalog):
        response = admin_client.post(ROLES_URL, {
            'role_key': 'manager',
            'role_name': 'Manager',
            'permission_ids': [str(catalog['orders.view_all_orders'].id)],
        }, format='json', HTTP_X_REQUEST_ID='req-create')

        assert response.status_code == 201
        body = response.json()
        assert body['success'] is True
        assert body['data']['role_key'] == 'manager'
        assert body['data']['permission_count'] == 1

        entry = AuditLogEntry.objects.get(action_type=AuditLogEntry.ActionType.ROLE_CREATED)
        assert entry.request_id == 'req-create'

    def test_duplicate_role_key(self, admin_client, admin_role):
        response = admin_client.post(ROLES_URL, {'role_key': 'admin', 'role_name': 'Admin'}, format='json')

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'DUPLICATE_ROLE_KEY'

    def test_validation_error(self, admin_client):
        response = admin_client.post(ROLES_URL, {'role_name': 'No key'}, format='json')

        assert response.status_code == 400
        assert 'role_key' in response.json()['error']['fields']

    def test_create_forbidden_without_manage_roles(self, staff_client, catalog):
        response = staff_client.post(ROLES_URL, {'role_key': 'x', 'role_name': 'X'}, format='json')

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'FORBIDDEN'

    def test_list_roles_paginated(self, admin_client, admin_role, company, make_role):
        for index in range(3):
            make_role(company, f'role_{index}')

        response = admin_client.get(ROLES_URL, {'limit': 2})

        body = response.json()
        assert response.status_code == 200
        assert len(body['data']) == 2
        assert body['pagination'] == {'page': 1, 'limit': 2, 'total': 4, 'total_pages': 2}
        assert body['data'][0]['role_key'] == 'admin'
        assert body['data'][0]['user_count'] == 1

    def test_list_roles_with_permissions(self, admin_client, admin_role):
        response = admin_client.get(ROLES_URL, {'include_permissions': 'true'})

        data = response.json()['data']
        assert 'roles.manage_roles' in data[0]['permissions']
        assert len(data[0]['permissions']) == 5

        response = admin_client.get(ROLES_URL)
        assert 'permissions' not in response.json()['data'][0]

    def test_role_detail(self, admin_client, admin_role):
        response = admin_client.get(f'{ROLES_URL}/{admin_role.id}')

        data = response.json()['data']
        assert len(data['permissions']) == 5
        assert [u['email'] for u in data['users']] == ['admin@acme.test']

    def test_update_and_delete(self, admin_client, company, make_role):
        role = make_role(company, 'sales')

        response = admin_client.put(f'{ROLES_URL}/{role.id}', {'role_name': 'Sales Team'}, format='json')
        assert response.status_code == 200
        assert response.json()['data']['role_name'] == 'Sales Team'

        response = admin_client.delete(f'{ROLES_URL}/{role.id}')
        assert response.status_code == 200
        assert not Role.objects.filter(id=role.id).exists()

    def test_delete_role_in_use(self, admin_client, admin_role):
        response = admin_client.delete(f'{ROLES_URL}/{admin_role.id}')

        assert response.status_code == 400
        error = response.json()['error']
        assert error['code'] == 'ROLE_IN_USE'
        assert error['user_count'] == 1

    def test_other_company_role_is_not_found(self, admin_client, other_company, make_role):
        foreign = make_role(other_company, 'foreign')

        response = admin_client.get(f'{ROLES_URL}/{foreign.id}')

        assert response.status_code == 404

    def test_clone_hierarchy_compare(self, admin_client, admin_role, company, make_role):
        response = admin_client.post(
            f'{ROLES_URL}/{admin_role.id}/clone',
            {'new_role_key': 'admin_copy', 'new_role_name': 'Admin Copy'},
            format='json',
        )
        assert response.status_code == 201
        clone_id = response.json()['data']['id']

        response = admin_client.get(f'{ROLES_URL}/hierarchy')
        assert {node['role_key'] for node in response.json()['data']} == {'admin', 'admin_copy'}

        response = admin_client.get(f'{ROLES_URL}/compare', {'role_ids': f'{admin_role.id},{clone_id}'})
        assert set(response.json()['data']) == {str(admin_role.id), clone_id}

        response = admin_client.get(f'{ROLES_URL}/compare')
        assert response.status_code == 400

    def test_bulk_assign_and_revoke(self, admin_client, company, catalog, make_role):
        role = make_role(company, 'sales')
        payload = {'permission_ids': [
            str(catalog['orders.view_all_orders'].id),
            str(catalog['salaries.view_salaries'].id),
        ]}

        response = admin_client.post(f'{ROLES_URL}/{role.id}/permissions', payload, format='json')
        assert response.json()['data'] == {'assigned': 1, 'skipped': 1, 'total': 2}

        response = admin_client.delete(f'{ROLES_URL}/{role.id}/permissions', payload, format='json')
        assert response.json()['data'] == {'revoked': 1}
        assert not RolePermission.objects.for_role(role.id).exists()


@pytest.mark.django_db
class TestOwnerAccess:

    def test_owner_must_name_company(self, owner_client):
        response = owner_client.get(ROLES_URL)

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'BAD_REQUEST'

    def test_owner_with_company_header(self, owner_client, company, admin_role):
        response = owner_client.get(ROLES_URL, HTTP_X_COMPANY_ID=str(company.id))

        assert response.status_code == 200
        assert response.json()['pagination']['total'] == 1

    def test_owner_ignores_frozen_company(self, owner_client, company, admin_role):
        company.is_frozen = True
        company.save()

        response = owner_client.get(ROLES_URL, {'company_id': str(company.id)})

        assert response.status_code == 200


@pytest.mark.django_db
class TestAccountState:

    def test_frozen_company_blocks_users(self, admin_client, company):
        company.is_frozen = True
        company.save()

        response = admin_client.get(ROLES_URL)

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'COMPANY_FROZEN'

    def test_deactivated_after_token_issue(self, admin_client, admin_user):
        admin_user.is_active = False
        admin_user.save()

        response = admin_client.get(ROLES_URL)

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'PRINCIPAL_NOT_FOUND'


@pytest.mark.django_db
class TestPermissionEndpoints:

    def test_my_permissions(self, admin_client, owner_client):
        response = admin_client.get('/api/v1/rbac/me/permissions')
        assert 'roles.manage_roles' in response.json()['data']['permissions']

        response = owner_client.get('/api/v1/rbac/me/permissions')
        assert response.json()['data']['permissions'] == ['*.*']

    def test_available_permissions(self, staff_client, catalog):
        response = staff_client.get('/api/v1/rbac/permissions/available', {'grouped': 'true'})

        assert response.status_code == 200
        assert 'Administration' in response.json()['data']

    def test_permission_check(self, staff_client, catalog):
        response = staff_client.get(
            '/api/v1/rbac/permissions/check', {'module_key': 'orders', 'permission_key': 'view_all_orders'}
        )
        assert response.json()['data']['has_permission'] is False


@pytest.mark.django_db
class TestUserEndpoints:

    def test_assign_and_revoke_role(self, admin_client, staff_user, company, make_role):
        role = make_role(company, 'sales')
        url = f'/api/v1/rbac/users/{staff_user.id}/role'

        response = admin_client.post(url, {'role_id': str(role.id)}, format='json')
        assert response.status_code == 200
        assert response.json()['data']['role_name'] == 'Sales'

        response = admin_client.delete(url)
        assert response.status_code == 200
        staff_user.refresh_from_db()
        assert staff_user.assigned_role_id is None

    def test_user_permission_report(self, admin_client, admin_user):
        response = admin_client.get(f'/api/v1/rbac/users/{admin_user.id}/permissions')

        assert response.json()['data']['total_permissions'] == 5

    def test_override_grant_and_revoke(self, admin_client, staff_user, catalog):
        url = f'/api/v1/rbac/users/{staff_user.id}/permissions/override'
        payload = {'permission_id': str(catalog['orders.view_all_orders'].id), 'reason': 'holiday cover'}

        response = admin_client.post(url, payload, format='json')
        assert response.status_code == 200
        assert response.json()['data']['override_reason'] == 'holiday cover'

        response = admin_client.delete(url, {'permission_id': payload['permission_id']}, format='json')
        assert response.json()['data'] == {'deleted': True}

    def test_override_not_delegable(self, admin_client, staff_user, catalog):
        url = f'/api/v1/rbac/users/{staff_user.id}/permissions/override'
        response = admin_client.post(
            url, {'permission_id': str(catalog['salaries.view_salaries'].id)}, format='json'
        )

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'FORBIDDEN'


@pytest.mark.django_db
class TestAuditEndpoint:

    def test_requires_management_permission(self, staff_client, catalog):
        response = staff_client.get('/api/v1/rbac/audit')

        assert response.status_code == 403
        error = response.json()['error']
        assert error['code'] == 'PERMISSION_DENIED'
        assert error['required_permissions'] == [
            {'module': 'roles', 'permission': 'manage_roles'},
            {'module': 'users', 'permission': 'assign_roles'},
        ]

    def test_lists_newest_first(self, admin_client, company, make_role):
        role = make_role(company, 'sales')
        admin_client.put(f'{ROLES_URL}/{role.id}', {'role_name': 'Sales Team'}, format='json')
        admin_client.delete(f'{ROLES_URL}/{role.id}')

        response = admin_client.get('/api/v1/rbac/audit')

        body = response.json()
        assert [e['action_type'] for e in body['data']] == ['ROLE_DELETED', 'ROLE_UPDATED']
        assert body['pagination']['total'] == 2

        response = admin_client.get('/api/v1/rbac/audit', {'action_type': 'ROLE_UPDATED'})
        assert response.json()['pagination']['total'] == 1

    def test_bad_date_range(self, admin_client):
        response = admin_client.get('/api/v1/rbac/audit', {'start_date': '2024-02-01', 'end_date': '2024-01-01'})
        assert response.status_code == 400
