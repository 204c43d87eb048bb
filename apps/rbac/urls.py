"""
RBAC API URLs.

Provides endpoints for:
- Role management (CRUD, clone, hierarchy, compare)
- Permission management (catalog, bulk assign/revoke, checks)
- User role assignment, permission reports and overrides
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    RoleListCreateView,
    RoleDetailView,
    RoleCloneView,
    RoleHierarchyView,
    RoleCompareView,
    RolePermissionsView,
    AvailablePermissionsView,
    PermissionCheckView,
    MyPermissionsView,
    UserRoleView,
    UserPermissionsView,
    UserOverrideView,
    AuditLogListView,
)

app_name = 'rbac'

urlpatterns = [
    # Role endpoints
    path('roles', RoleListCreateView.as_view(), name='role-list'),
    path('roles/hierarchy', RoleHierarchyView.as_view(), name='role-hierarchy'),
    path('roles/compare', RoleCompareView.as_view(), name='role-compare'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),
    path('roles/<uuid:role_id>/clone', RoleCloneView.as_view(), name='role-clone'),
    path('roles/<uuid:role_id>/permissions', RolePermissionsView.as_view(), name='role-permissions'),

    # Permission catalog endpoints
    path('permissions/available', AvailablePermissionsView.as_view(), name='permissions-available'),
    path('permissions/check', PermissionCheckView.as_view(), name='permissions-check'),
    path('me/permissions', MyPermissionsView.as_view(), name='my-permissions'),

    # User endpoints
    path('users/<uuid:user_id>/role', UserRoleView.as_view(), name='user-role'),
    path('users/<uuid:user_id>/permissions', UserPermissionsView.as_view(), name='user-permissions'),
    path('users/<uuid:user_id>/permissions/override', UserOverrideView.as_view(), name='user-override'),

    # Audit endpoints
    path('audit', AuditLogListView.as_view(), name='audit-list'),
]
