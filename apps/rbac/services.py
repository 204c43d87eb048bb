"""
RBAC services.

Implements:
- AuditService: append and query the permission audit log
- RoleService: role CRUD, clone, hierarchy and comparison
- BindingService: bulk permission assignment/revocation on roles
- OverrideService: per-user temporary grants and the expiry sweep
- AssignmentService: user-role assignment
- CatalogService: catalog listing, per-user permission report, checks

Every mutating operation runs inside transaction.atomic() and writes its
audit entry in the same block, so a failure rolls back both.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.companies.models import Company
from apps.core.exceptions import (
    BadRequest,
    DuplicateRoleKey,
    Forbidden,
    NotFound,
    RoleInUse,
)
from apps.rbac.models import (
    AuditLogEntry,
    CompanyUser,
    Permission,
    PermissionOverride,
    Role,
    RolePermission,
)
from apps.rbac.principals import PrincipalKind
from apps.rbac.resolver import PermissionResolver

logger = logging.getLogger(__name__)

Action = AuditLogEntry.ActionType


def scope_company_id(principal, company_id=None):
    """
    Company id every query of this request is restricted to.

    Company users are pinned to their own company; asking for another
    company looks exactly like asking for something that does not exist.
    The Owner may act on any company but must name it.
    """
    if principal.kind is PrincipalKind.OWNER:
        if not company_id:
            raise BadRequest("company_id is required")
        try:
            exists = Company.objects.filter(id=company_id).exists()
        except (ValidationError, ValueError):
            exists = False
        if not exists:
            raise NotFound("Company not found")
        return company_id

    if company_id and str(company_id) != str(principal.company_id):
        logger.warning(
            f"Cross-company access attempt by {principal.id}",
            extra={'requested_company_id': str(company_id)}
        )
        raise NotFound("Company not found")
    return principal.company_id


def require_management_permission(principal, module_key, permission_key, message):
    """Raise Forbidden unless the principal is the Owner or holds the pair."""
    if principal.kind is PrincipalKind.OWNER:
        return
    if not PermissionResolver.has_permission(principal, module_key, permission_key):
        logger.warning(
            f"Management action refused: missing {module_key}.{permission_key}",
            extra={'principal_id': str(principal.id)}
        )
        raise Forbidden(message)


def _get_or_404(queryset, object_id, message):
    try:
        return queryset.get(id=object_id)
    except (queryset.model.DoesNotExist, ValidationError, ValueError):
        raise NotFound(message)


def _permission_dict(permission, **extra):
    data = {
        'id': str(permission.id),
        'module_key': permission.module.module_key,
        'module_name': permission.module.module_name,
        'permission_key': permission.permission_key,
        'permission_name': permission.permission_name,
    }
    data.update(extra)
    return data


class AuditService:
    """
    Append-only audit trail for RBAC mutations.
    """

    @classmethod
    def record(cls, company_id, action_type, principal, target_role_id=None,
               target_user_id=None, old_value=None, new_value=None) -> AuditLogEntry:
        entry = AuditLogEntry.log_action(
            company_id=company_id,
            action_type=action_type,
            principal=principal,
            target_role_id=target_role_id,
            target_user_id=target_user_id,
            old_value=old_value,
            new_value=new_value,
        )
        logger.info(
            f"RBAC audit: {action_type}",
            extra={
                'action_type': str(action_type),
                'target_role_id': str(target_role_id) if target_role_id else None,
                'target_user_id': str(target_user_id) if target_user_id else None,
            }
        )
        return entry

    @classmethod
    def query(cls, principal, company_id=None, action_type=None, target_user_id=None,
              target_role_id=None, start_date=None, end_date=None):
        """
        Audit entries for a company, newest first.

        Date bounds are inclusive calendar days.
        """
        company_id = scope_company_id(principal, company_id)
        entries = AuditLogEntry.objects.for_company(company_id)

        if action_type:
            entries = entries.by_action(action_type)
        if target_user_id:
            entries = entries.for_target_user(target_user_id)
        if target_role_id:
            entries = entries.for_target_role(target_role_id)

        return entries.between(start_date, end_date).order_by('-created_at')


class RoleService:
    """
    Company-scoped role lifecycle.
    """

    UPDATABLE_FIELDS = ('role_name', 'description', 'parent_role_id', 'hierarchy_level', 'is_active')

    @classmethod
    def normalize_role_key(cls, role_key: str) -> str:
        key = (role_key or '').strip().lower()
        if not key:
            raise BadRequest("role_key is required")
        return key

    @classmethod
    def get_role_instance(cls, role_id, company_id) -> Role:
        return _get_or_404(Role.objects.for_company(company_id), role_id, "Role not found")

    @classmethod
    def _validate_parent(cls, parent_role_id, company_id, role_id=None):
        if not parent_role_id:
            return None
        if role_id is not None and str(parent_role_id) == str(role_id):
            raise BadRequest("A role cannot be its own parent")
        parent = _get_or_404(Role.objects.for_company(company_id), parent_role_id, "Parent role not found")

        if role_id is not None:
            # Walk up from the proposed parent; reaching role_id means a cycle
            seen = {parent.id}
            ancestor_id = parent.parent_role_id
            while ancestor_id and ancestor_id not in seen:
                if str(ancestor_id) == str(role_id):
                    raise BadRequest("Parent role would create a cycle in the role hierarchy")
                seen.add(ancestor_id)
                ancestor_id = Role.objects.for_company(company_id).filter(
                    id=ancestor_id
                ).values_list('parent_role_id', flat=True).first()
        return parent

    @classmethod
    def list_roles(cls, principal, company_id=None, search=None, include_permissions=False):
        """
        Roles of a company with user and permission counts, ordered by
        hierarchy level (highest first) then newest.
        """
        company_id = scope_company_id(principal, company_id)
        roles = Role.objects.for_company(company_id).select_related('parent_role').annotate(
            user_count=Count('assigned_users', distinct=True),
            permission_count=Count('role_permissions', distinct=True),
        )
        if search:
            roles = roles.filter(Q(role_name__icontains=search) | Q(role_key__icontains=search))
        if include_permissions:
            roles = roles.prefetch_related('role_permissions__permission__module')
        return roles.order_by('-hierarchy_level', '-created_at')

    @classmethod
    def get_role(cls, principal, role_id, company_id=None) -> Dict[str, Any]:
        """Role with its bound permissions and the users currently holding it."""
        company_id = scope_company_id(principal, company_id)
        role = cls.get_role_instance(role_id, company_id)

        bindings = RolePermission.objects.for_role(role.id).select_related('permission__module').order_by(
            'permission__module__sort_order', 'permission__permission_key'
        )
        users = CompanyUser.objects.with_role(role.id).order_by('email')

        return {
            'role': role,
            'permissions': [
                _permission_dict(b.permission, can_grant=b.can_grant) for b in bindings
            ],
            'users': [
                {'id': str(u.id), 'email': u.email, 'name': u.get_full_name(), 'is_active': u.is_active}
                for u in users
            ],
        }

    @classmethod
    def create_role(cls, principal, company_id, role_key, role_name, description='',
                    parent_role_id=None, hierarchy_level=0, is_system_role=False,
                    permission_ids: Optional[Iterable] = None) -> Role:
        """
        Create a role and bind the requested permissions the caller may grant.

        Ungrantable or unknown permission ids are skipped, not errors.

        Raises:
            DuplicateRoleKey, Forbidden, NotFound (parent), BadRequest
        """
        company_id = scope_company_id(principal, company_id)
        role_key = cls.normalize_role_key(role_key)
        role_name = (role_name or '').strip()
        if not role_name:
            raise BadRequest("role_name is required")

        with transaction.atomic():
            if Role.objects.key_exists(company_id, role_key):
                raise DuplicateRoleKey(f"Role key '{role_key}' already exists")

            require_management_permission(
                principal, 'roles', 'manage_roles', "You do not have permission to create roles"
            )
            parent = cls._validate_parent(parent_role_id, company_id)

            try:
                with transaction.atomic():
                    role = Role.objects.create(
                        company_id=company_id,
                        role_key=role_key,
                        role_name=role_name,
                        description=description or '',
                        parent_role=parent,
                        hierarchy_level=hierarchy_level or 0,
                        is_system_role=bool(is_system_role),
                        created_by=principal.id,
                    )
            except IntegrityError:
                raise DuplicateRoleKey(f"Role key '{role_key}' already exists")

            bound = 0
            for permission in Permission.objects.filter(id__in=list(permission_ids or [])):
                if not PermissionResolver.can_grant_permission(principal, permission.id, company_id):
                    logger.info(
                        f"Skipping ungrantable permission {permission.id} on new role {role.id}"
                    )
                    continue
                _, created = RolePermission.objects.get_or_create(
                    role=role,
                    permission=permission,
                    defaults={'can_grant': False, 'granted_by': principal.id},
                )
                bound += int(created)

            AuditService.record(
                company_id, Action.ROLE_CREATED, principal,
                target_role_id=role.id,
                new_value={'role_name': role.role_name, 'role_key': role.role_key, 'permission_count': bound},
            )

        role.permission_count = bound
        return role

    @classmethod
    def update_role(cls, principal, role_id, company_id, patch: Dict[str, Any]) -> Role:
        """
        Apply a patch to a non-system role.

        Immutable fields (role_key, company_id, created_by, created_at,
        is_system_role) are ignored.

        Raises:
            NotFound, Forbidden, BadRequest (nothing left to update)
        """
        company_id = scope_company_id(principal, company_id)

        with transaction.atomic():
            role = _get_or_404(
                Role.objects.for_company(company_id).select_for_update(), role_id, "Role not found"
            )
            if role.is_system_role:
                raise Forbidden("Cannot modify system roles")
            require_management_permission(
                principal, 'roles', 'manage_roles', "You do not have permission to update roles"
            )

            updates = {k: v for k, v in patch.items() if k in cls.UPDATABLE_FIELDS}
            if not updates:
                raise BadRequest("No valid fields to update")

            if 'parent_role_id' in updates:
                parent = cls._validate_parent(updates['parent_role_id'], company_id, role_id=role.id)
                updates['parent_role_id'] = parent.id if parent else None
            if 'role_name' in updates:
                updates['role_name'] = (updates['role_name'] or '').strip()
                if not updates['role_name']:
                    raise BadRequest("role_name cannot be empty")

            before = role.snapshot()
            for field, value in updates.items():
                setattr(role, field, value)
            role.save()

            AuditService.record(
                company_id, Action.ROLE_UPDATED, principal,
                target_role_id=role.id,
                old_value=before,
                new_value=role.snapshot(),
            )

        return role

    @classmethod
    def delete_role(cls, principal, role_id, company_id=None) -> None:
        """
        Delete a non-system role nobody holds, together with its bindings.

        Raises:
            NotFound, Forbidden, RoleInUse
        """
        company_id = scope_company_id(principal, company_id)

        with transaction.atomic():
            role = _get_or_404(
                Role.objects.for_company(company_id).select_for_update(), role_id, "Role not found"
            )
            if role.is_system_role:
                raise Forbidden("Cannot delete system roles")

            user_count = CompanyUser.objects.with_role(role.id).count()
            if user_count:
                raise RoleInUse(user_count)

            require_management_permission(
                principal, 'roles', 'manage_roles', "You do not have permission to delete roles"
            )

            snapshot = role.snapshot()
            RolePermission.objects.for_role(role.id).delete()
            role.delete()

            AuditService.record(
                company_id, Action.ROLE_DELETED, principal,
                target_role_id=snapshot['id'],
                old_value=snapshot,
            )

    @classmethod
    def clone_role(cls, principal, source_role_id, company_id, new_role_key, new_role_name,
                   include_can_grant=False) -> Role:
        """
        Copy a role and all of its bindings under a new key.

        ``can_grant`` flags are copied only when include_can_grant is set.

        Raises:
            NotFound (source), DuplicateRoleKey, Forbidden, BadRequest
        """
        company_id = scope_company_id(principal, company_id)
        new_role_key = cls.normalize_role_key(new_role_key)
        new_role_name = (new_role_name or '').strip()
        if not new_role_name:
            raise BadRequest("New role key and name are required")

        with transaction.atomic():
            source = cls.get_role_instance(source_role_id, company_id)
            if Role.objects.key_exists(company_id, new_role_key):
                raise DuplicateRoleKey(f"Role key '{new_role_key}' already exists")
            require_management_permission(
                principal, 'roles', 'manage_roles', "You do not have permission to clone roles"
            )

            try:
                with transaction.atomic():
                    role = Role.objects.create(
                        company_id=company_id,
                        role_key=new_role_key,
                        role_name=new_role_name,
                        description=f"Cloned from {source.role_name}",
                        hierarchy_level=source.hierarchy_level,
                        created_by=principal.id,
                    )
            except IntegrityError:
                raise DuplicateRoleKey(f"Role key '{new_role_key}' already exists")

            RolePermission.objects.bulk_create([
                RolePermission(
                    role=role,
                    permission_id=binding.permission_id,
                    can_grant=binding.can_grant if include_can_grant else False,
                    granted_by=principal.id,
                )
                for binding in RolePermission.objects.for_role(source.id)
            ])
            role.permission_count = RolePermission.objects.for_role(role.id).count()

            AuditService.record(
                company_id, Action.ROLE_CREATED, principal,
                target_role_id=role.id,
                new_value={
                    'role_name': role.role_name,
                    'role_key': role.role_key,
                    'permission_count': role.permission_count,
                    'cloned_from': str(source.id),
                },
            )

        return role

    @classmethod
    def get_role_hierarchy(cls, principal, company_id=None) -> List[Dict[str, Any]]:
        """
        Forest of active roles built from parent links.

        Display structure only: no permission inheritance is implied.
        Roles whose parent is inactive or missing become roots.
        """
        company_id = scope_company_id(principal, company_id)
        roles = list(
            Role.objects.active(company_id).select_related('parent_role').annotate(
                user_count=Count('assigned_users', distinct=True),
                permission_count=Count('role_permissions', distinct=True),
            ).order_by('-hierarchy_level', '-created_at')
        )

        nodes = {}
        for role in roles:
            nodes[role.id] = {
                'id': str(role.id),
                'role_key': role.role_key,
                'role_name': role.role_name,
                'hierarchy_level': role.hierarchy_level,
                'parent_role_id': str(role.parent_role_id) if role.parent_role_id else None,
                'parent_role_name': role.parent_role.role_name if role.parent_role else None,
                'is_system_role': role.is_system_role,
                'user_count': role.user_count,
                'permission_count': role.permission_count,
                'children': [],
            }

        forest = []
        for role in roles:
            parent = nodes.get(role.parent_role_id)
            if parent is None:
                forest.append(nodes[role.id])
            else:
                parent['children'].append(nodes[role.id])
        return forest

    @classmethod
    def compare_roles(cls, principal, role_ids: List, company_id=None) -> Dict[str, Any]:
        """
        Bound permissions per role, keyed by role id, for external diffing.

        Ids that do not resolve in the company are skipped.

        Raises:
            BadRequest: fewer than two roles resolved
        """
        company_id = scope_company_id(principal, company_id)
        if len(role_ids or []) < 2:
            raise BadRequest("At least 2 roles are required for comparison")

        comparison = {}
        for role_id in role_ids:
            try:
                role = cls.get_role_instance(role_id, company_id)
            except NotFound:
                continue
            bindings = RolePermission.objects.for_role(role.id).select_related(
                'permission__module'
            ).order_by('permission__module__module_key', 'permission__permission_key')
            comparison[str(role.id)] = {
                'role_name': role.role_name,
                'role_key': role.role_key,
                'permissions': [
                    _permission_dict(b.permission, can_grant=b.can_grant) for b in bindings
                ],
            }

        if len(comparison) < 2:
            raise BadRequest("At least 2 existing roles are required for comparison")
        return comparison


class BindingService:
    """
    Bulk role-permission binding operations.
    """

    @classmethod
    def assign_permissions(cls, principal, role_id, company_id, permission_ids: Iterable,
                           can_grant=False) -> Dict[str, int]:
        """
        Bind permissions to a role.

        Existing bindings and permissions the caller cannot delegate are
        skipped. One PERMISSION_GRANTED entry summarizes the call.

        Returns:
            {'assigned': n, 'skipped': m, 'total': n + m}
        """
        company_id = scope_company_id(principal, company_id)
        permission_ids = list(dict.fromkeys(permission_ids or []))
        if not permission_ids:
            raise BadRequest("permission_ids must be a non-empty list")

        with transaction.atomic():
            role = RoleService.get_role_instance(role_id, company_id)
            require_management_permission(
                principal, 'roles', 'assign_permissions',
                "You do not have permission to assign permissions"
            )

            known = {str(p.id): p for p in Permission.objects.filter(id__in=permission_ids)}
            assigned = skipped = 0
            for permission_id in permission_ids:
                permission = known.get(str(permission_id))
                if permission is None or not PermissionResolver.can_grant_permission(
                        principal, permission.id, company_id):
                    skipped += 1
                    continue

                _, created = RolePermission.objects.get_or_create(
                    role=role,
                    permission=permission,
                    defaults={'can_grant': bool(can_grant), 'granted_by': principal.id},
                )
                if created:
                    assigned += 1
                else:
                    skipped += 1

            AuditService.record(
                company_id, Action.PERMISSION_GRANTED, principal,
                target_role_id=role.id,
                new_value={'assigned': assigned, 'skipped': skipped, 'total': len(permission_ids)},
            )

        return {'assigned': assigned, 'skipped': skipped, 'total': len(permission_ids)}

    @classmethod
    def revoke_permissions(cls, principal, role_id, company_id, permission_ids: Iterable) -> int:
        """Delete matching bindings; returns how many rows were removed."""
        company_id = scope_company_id(principal, company_id)
        permission_ids = list(dict.fromkeys(permission_ids or []))
        if not permission_ids:
            raise BadRequest("permission_ids must be a non-empty list")

        with transaction.atomic():
            role = RoleService.get_role_instance(role_id, company_id)
            require_management_permission(
                principal, 'roles', 'assign_permissions',
                "You do not have permission to revoke permissions"
            )

            removed, _ = RolePermission.objects.for_role(role.id).filter(
                permission_id__in=permission_ids
            ).delete()

            AuditService.record(
                company_id, Action.PERMISSION_REVOKED, principal,
                target_role_id=role.id,
                old_value={
                    'revoked_count': removed,
                    'permission_ids': [str(pid) for pid in permission_ids],
                },
            )

        return removed


class OverrideService:
    """
    Per-user temporary permission grants.
    """

    @classmethod
    def grant_override(cls, principal, user_id, permission_id, company_id=None,
                       expires_at=None, reason='') -> PermissionOverride:
        """
        Upsert a granted override for (user, permission).

        Raises:
            NotFound (user or permission), Forbidden (not delegable), BadRequest
        """
        company_id = scope_company_id(principal, company_id)
        if expires_at is not None and expires_at <= timezone.now():
            raise BadRequest("expires_at must be in the future")

        with transaction.atomic():
            user = _get_or_404(CompanyUser.objects.for_company(company_id), user_id, "User not found")
            permission = _get_or_404(Permission.objects.all(), permission_id, "Permission not found")

            if not PermissionResolver.can_grant_permission(principal, permission.id, company_id):
                raise Forbidden("You do not have permission to grant this permission")

            previous = PermissionOverride.objects.filter(user=user, permission=permission).first()
            override, created = PermissionOverride.objects.update_or_create(
                user=user,
                permission=permission,
                defaults={
                    'is_granted': True,
                    'expires_at': expires_at,
                    'override_reason': reason or '',
                    'overridden_by': principal.id,
                },
            )

            AuditService.record(
                company_id, Action.OVERRIDE_GRANTED, principal,
                target_user_id=user.id,
                old_value=previous.snapshot(exclude=('created_at', 'updated_at')) if previous else None,
                new_value=override.snapshot(exclude=('created_at', 'updated_at')),
            )

        return override

    @classmethod
    def revoke_override(cls, principal, user_id, permission_id, company_id=None) -> bool:
        """
        Delete the override for (user, permission) if present.

        Returns whether anything was deleted; nothing matching is not an error.
        """
        company_id = scope_company_id(principal, company_id)

        with transaction.atomic():
            user = _get_or_404(CompanyUser.objects.for_company(company_id), user_id, "User not found")
            require_management_permission(
                principal, 'users', 'assign_roles',
                "You do not have permission to revoke permission overrides"
            )

            override = PermissionOverride.objects.filter(user=user, permission_id=permission_id).first()
            if override is None:
                return False

            snapshot = override.snapshot(exclude=('created_at', 'updated_at'))
            override.delete()

            AuditService.record(
                company_id, Action.OVERRIDE_REVOKED, principal,
                target_user_id=user.id,
                old_value=snapshot,
            )

        return True

    @classmethod
    def purge_expired(cls) -> int:
        """Maintenance sweep: delete overrides whose expiry has passed."""
        deleted, _ = PermissionOverride.objects.expired().delete()
        return deleted


class AssignmentService:
    """
    User-role assignment. A user holds at most one role.
    """

    @classmethod
    def assign_role(cls, principal, user_id, role_id, company_id=None) -> CompanyUser:
        """
        Assign (or replace) a user's role.

        Raises:
            NotFound (user or role in company), Forbidden
        """
        company_id = scope_company_id(principal, company_id)
        if not role_id:
            raise BadRequest("Role ID is required")

        with transaction.atomic():
            user = _get_or_404(
                CompanyUser.objects.for_company(company_id).select_for_update(), user_id, "User not found"
            )
            role = RoleService.get_role_instance(role_id, company_id)
            require_management_permission(
                principal, 'users', 'assign_roles', "You do not have permission to assign roles"
            )

            old_role_id = user.assigned_role_id
            user.assigned_role = role
            user.role_assigned_at = timezone.now()
            user.role_assigned_by = principal.id
            user.save(update_fields=['assigned_role', 'role_assigned_at', 'role_assigned_by', 'updated_at'])

            AuditService.record(
                company_id, Action.USER_ROLE_ASSIGNED, principal,
                target_user_id=user.id,
                target_role_id=role.id,
                old_value={'old_role_id': str(old_role_id)} if old_role_id else None,
                new_value={'role_id': str(role.id), 'role_name': role.role_name},
            )

        return user

    @classmethod
    def revoke_role(cls, principal, user_id, company_id=None) -> CompanyUser:
        """
        Clear a user's role assignment.

        Raises:
            NotFound, Forbidden
        """
        company_id = scope_company_id(principal, company_id)

        with transaction.atomic():
            user = _get_or_404(
                CompanyUser.objects.for_company(company_id).select_for_update(), user_id, "User not found"
            )
            require_management_permission(
                principal, 'users', 'assign_roles', "You do not have permission to revoke roles"
            )

            old_role_id = user.assigned_role_id
            user.assigned_role = None
            user.role_assigned_at = None
            user.role_assigned_by = None
            user.save(update_fields=['assigned_role', 'role_assigned_at', 'role_assigned_by', 'updated_at'])

            AuditService.record(
                company_id, Action.USER_ROLE_REVOKED, principal,
                target_user_id=user.id,
                old_value={'old_role_id': str(old_role_id) if old_role_id else None},
            )

        return user


class CatalogService:
    """
    Read-side views over the permission catalog.
    """

    @classmethod
    def available_permissions(cls, grouped=False):
        """
        Active catalog entries.

        Flat: list of permission dicts. Grouped: {module_group: {module_key:
        {module_name, permissions: [...]}}}.
        """
        permissions = Permission.objects.active().select_related('module').order_by(
            'module__module_group', 'module__sort_order', 'permission_key'
        )
        if not grouped:
            return [
                _permission_dict(p, module_group=p.module.module_group, description=p.description)
                for p in permissions
            ]

        result = {}
        for permission in permissions:
            module = permission.module
            group = result.setdefault(module.module_group or 'General', {})
            entry = group.setdefault(module.module_key, {
                'module_name': module.module_name,
                'permissions': [],
            })
            entry['permissions'].append({
                'id': str(permission.id),
                'permission_key': permission.permission_key,
                'permission_name': permission.permission_name,
                'description': permission.description,
            })
        return result

    @classmethod
    def get_user_permissions(cls, principal, user_id=None, company_id=None) -> Dict[str, Any]:
        """
        Role-sourced and active-override-sourced permissions of a user,
        grouped by module group and module. Defaults to the caller.
        """
        company_id = scope_company_id(principal, company_id)
        if user_id is None:
            if principal.kind is PrincipalKind.OWNER:
                raise BadRequest("user_id is required")
            user_id = principal.id

        user = _get_or_404(
            CompanyUser.objects.for_company(company_id).select_related('assigned_role'),
            user_id,
            "User not found",
        )

        rows = []
        if user.assigned_role_id:
            bindings = RolePermission.objects.filter(
                role_id=user.assigned_role_id,
                role__is_active=True,
                permission__in=Permission.objects.active(),
            ).select_related('permission__module')
            rows.extend((b.permission, b.can_grant, 'ROLE') for b in bindings)

        overrides = PermissionOverride.objects.active().filter(user=user).select_related('permission__module')
        rows.extend((o.permission, False, 'OVERRIDE') for o in overrides)

        rows.sort(key=lambda row: (
            row[0].module.module_group, row[0].module.sort_order, row[0].permission_key
        ))

        grouped = {}
        for permission, can_grant, source in rows:
            module = permission.module
            group = grouped.setdefault(module.module_group or 'General', {})
            entry = group.setdefault(module.module_key, {
                'module_name': module.module_name,
                'permissions': [],
            })
            entry['permissions'].append({
                'permission_key': permission.permission_key,
                'permission_name': permission.permission_name,
                'description': permission.description,
                'can_grant': can_grant,
                'source': source,
            })

        role = user.assigned_role
        return {
            'user': {
                'id': str(user.id),
                'email': user.email,
                'name': user.get_full_name(),
                'role': role.role_name if role else None,
                'role_key': role.role_key if role else None,
            },
            'permissions': grouped,
            'total_permissions': len(rows),
        }

    @classmethod
    def check_permission(cls, principal, module_key, permission_key) -> Dict[str, Any]:
        if not module_key or not permission_key:
            raise BadRequest("module_key and permission_key are required")
        return {
            'has_permission': PermissionResolver.has_permission(principal, module_key, permission_key),
            'module_key': module_key,
            'permission_key': permission_key,
        }

