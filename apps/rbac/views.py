"""
RBAC REST API views.

Implements endpoints for:
- Role management (CRUD, clone, hierarchy, compare)
- Permission management (catalog, bulk assign/revoke, checks)
- User role assignment and per-user permission reports
- Permission overrides
- Audit log viewing

Views only validate input and call the services in apps.rbac.services;
authorization decisions live in the services and the gates.
"""
from rest_framework.views import APIView

from apps.core.exceptions import BadRequest
from apps.core.permissions import (
    AttachUserPermissions,
    HasModulePermission,
    IsActiveAccount,
    requires_any_permission,
)
from apps.core.responses import StandardResultsSetPagination, created_response, success_response
from apps.rbac.serializers import (
    AssignRoleSerializer,
    AuditLogEntrySerializer,
    AuditQuerySerializer,
    OverrideGrantSerializer,
    OverrideRevokeSerializer,
    PermissionCheckSerializer,
    PermissionIdsSerializer,
    PermissionOverrideSerializer,
    RoleCloneSerializer,
    RoleCompareSerializer,
    RoleCreateSerializer,
    RoleSerializer,
    RoleUpdateSerializer,
)
from apps.rbac.services import (
    AssignmentService,
    AuditService,
    BindingService,
    CatalogService,
    OverrideService,
    RoleService,
)


def requested_company_id(request):
    """
    Company named by the caller.

    Owners pass it as the ``X-Company-ID`` header or ``company_id`` query
    parameter; company users may omit it.
    """
    return request.headers.get('X-Company-ID') or request.query_params.get('company_id')


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class RBACAPIView(APIView):
    permission_classes = [IsActiveAccount]


# ===== ROLES =====

class RoleListCreateView(RBACAPIView):
    """
    GET  /api/v1/rbac/roles   list roles (paginated, ?search=, ?include_permissions=true)
    POST /api/v1/rbac/roles   create a role (roles.manage_roles)
    """

    pagination_class = StandardResultsSetPagination

    def get(self, request):
        include_permissions = request.query_params.get('include_permissions', '').lower() == 'true'
        roles = RoleService.list_roles(
            request.principal,
            requested_company_id(request),
            search=request.query_params.get('search'),
            include_permissions=include_permissions,
        )
        paginator = self.pagination_class()
        paginator.message = 'Roles retrieved successfully'
        page = paginator.paginate_queryset(roles, request, view=self)
        serializer = RoleSerializer(page, many=True, context={'include_permissions': include_permissions})
        return paginator.get_paginated_response(serializer.data)

    def post(self, request):
        data = _validated(RoleCreateSerializer, request.data)
        role = RoleService.create_role(
            request.principal,
            requested_company_id(request),
            **data
        )
        return created_response(RoleSerializer(role).data, 'Role created successfully')


class RoleDetailView(RBACAPIView):
    """
    GET    /api/v1/rbac/roles/<id>
    PUT    /api/v1/rbac/roles/<id>   (roles.manage_roles, non-system roles)
    DELETE /api/v1/rbac/roles/<id>   (roles.manage_roles, unassigned non-system roles)
    """

    def get(self, request, role_id):
        detail = RoleService.get_role(request.principal, role_id, requested_company_id(request))
        data = RoleSerializer(detail['role']).data
        data['permissions'] = detail['permissions']
        data['users'] = detail['users']
        return success_response(data, 'Role retrieved successfully')

    def put(self, request, role_id):
        serializer = RoleUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        role = RoleService.update_role(
            request.principal, role_id, requested_company_id(request), dict(serializer.validated_data)
        )
        return success_response(RoleSerializer(role).data, 'Role updated successfully')

    patch = put

    def delete(self, request, role_id):
        RoleService.delete_role(request.principal, role_id, requested_company_id(request))
        return success_response(None, 'Role deleted successfully')


class RoleCloneView(RBACAPIView):
    """POST /api/v1/rbac/roles/<id>/clone"""

    def post(self, request, role_id):
        data = _validated(RoleCloneSerializer, request.data)
        role = RoleService.clone_role(
            request.principal,
            role_id,
            requested_company_id(request),
            data['new_role_key'],
            data['new_role_name'],
            include_can_grant=data['include_can_grant'],
        )
        return created_response(RoleSerializer(role).data, 'Role cloned successfully')


class RoleHierarchyView(RBACAPIView):
    """GET /api/v1/rbac/roles/hierarchy"""

    def get(self, request):
        forest = RoleService.get_role_hierarchy(request.principal, requested_company_id(request))
        return success_response(forest, 'Role hierarchy retrieved successfully')


class RoleCompareView(RBACAPIView):
    """GET /api/v1/rbac/roles/compare?role_ids=<id>,<id>[,...]"""

    def get(self, request):
        if not request.query_params.get('role_ids'):
            raise BadRequest("Role IDs are required (comma-separated)")
        data = _validated(RoleCompareSerializer, request.query_params)
        comparison = RoleService.compare_roles(
            request.principal, data['role_ids'], requested_company_id(request)
        )
        return success_response(comparison, 'Role comparison completed')


class RolePermissionsView(RBACAPIView):
    """
    POST   /api/v1/rbac/roles/<id>/permissions   bulk assign
    DELETE /api/v1/rbac/roles/<id>/permissions   bulk revoke
    """

    def post(self, request, role_id):
        data = _validated(PermissionIdsSerializer, request.data)
        result = BindingService.assign_permissions(
            request.principal,
            role_id,
            requested_company_id(request),
            data['permission_ids'],
            can_grant=data['can_grant'],
        )
        return success_response(
            result,
            f"{result['assigned']} permission(s) assigned, {result['skipped']} skipped"
        )

    def delete(self, request, role_id):
        data = _validated(PermissionIdsSerializer, request.data)
        removed = BindingService.revoke_permissions(
            request.principal, role_id, requested_company_id(request), data['permission_ids']
        )
        return success_response({'revoked': removed}, f"{removed} permission(s) revoked successfully")


# ===== PERMISSION CATALOG =====

class AvailablePermissionsView(RBACAPIView):
    """GET /api/v1/rbac/permissions/available[?grouped=true]"""

    def get(self, request):
        grouped = request.query_params.get('grouped') == 'true'
        return success_response(
            CatalogService.available_permissions(grouped=grouped),
            'Available permissions retrieved successfully'
        )


class PermissionCheckView(RBACAPIView):
    """GET /api/v1/rbac/permissions/check?module_key=&permission_key="""

    def get(self, request):
        data = _validated(PermissionCheckSerializer, request.query_params)
        result = CatalogService.check_permission(
            request.principal, data['module_key'], data['permission_key']
        )
        return success_response(result, 'Permission check completed')


class MyPermissionsView(APIView):
    """GET /api/v1/rbac/me/permissions   flat "module.permission" list ("*.*" for the Owner)"""

    permission_classes = [IsActiveAccount, AttachUserPermissions]

    def get(self, request):
        return success_response(
            {'permissions': request.user_permissions},
            'User permissions retrieved successfully'
        )


# ===== USERS =====

class UserRoleView(RBACAPIView):
    """
    POST   /api/v1/rbac/users/<id>/role   assign (or replace) role
    DELETE /api/v1/rbac/users/<id>/role   revoke role
    """

    def post(self, request, user_id):
        data = _validated(AssignRoleSerializer, request.data)
        user = AssignmentService.assign_role(
            request.principal, user_id, data['role_id'], requested_company_id(request)
        )
        return success_response(
            {
                'user_id': str(user.id),
                'role_id': str(user.assigned_role_id),
                'role_name': user.assigned_role.role_name,
            },
            'Role assigned to user successfully'
        )

    def delete(self, request, user_id):
        user = AssignmentService.revoke_role(request.principal, user_id, requested_company_id(request))
        return success_response({'user_id': str(user.id)}, 'Role revoked from user successfully')


class UserPermissionsView(RBACAPIView):
    """GET /api/v1/rbac/users/<id>/permissions"""

    def get(self, request, user_id):
        report = CatalogService.get_user_permissions(
            request.principal, user_id, requested_company_id(request)
        )
        return success_response(report, 'User permissions retrieved successfully')


class UserOverrideView(RBACAPIView):
    """
    POST   /api/v1/rbac/users/<id>/permissions/override   grant (upsert)
    DELETE /api/v1/rbac/users/<id>/permissions/override   revoke
    """

    def post(self, request, user_id):
        data = _validated(OverrideGrantSerializer, request.data)
        override = OverrideService.grant_override(
            request.principal,
            user_id,
            data['permission_id'],
            requested_company_id(request),
            expires_at=data['expires_at'],
            reason=data['reason'],
        )
        return success_response(
            PermissionOverrideSerializer(override).data,
            'Permission override granted successfully'
        )

    def delete(self, request, user_id):
        data = _validated(OverrideRevokeSerializer, request.data)
        deleted = OverrideService.revoke_override(
            request.principal, user_id, data['permission_id'], requested_company_id(request)
        )
        message = 'Permission override revoked successfully' if deleted else 'No matching override found'
        return success_response({'deleted': deleted}, message)


# ===== AUDIT =====

@requires_any_permission(('roles', 'manage_roles'), ('users', 'assign_roles'))
class AuditLogListView(APIView):
    """
    GET /api/v1/rbac/audit

    Filters: action_type, target_user_id, target_role_id, start_date, end_date.
    Requires roles.manage_roles or users.assign_roles.
    """

    permission_classes = [HasModulePermission]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        filters = _validated(AuditQuerySerializer, request.query_params)
        entries = AuditService.query(request.principal, requested_company_id(request), **filters)

        paginator = self.pagination_class()
        paginator.message = 'Audit logs retrieved successfully'
        page = paginator.paginate_queryset(entries, request, view=self)
        return paginator.get_paginated_response(AuditLogEntrySerializer(page, many=True).data)
