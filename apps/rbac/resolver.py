"""
Permission Resolver.

Decides whether a principal holds a (module_key, permission_key) pair.
Evaluation order, first match wins:

1. Owner bypass
2. Active binding on the user's active role
3. Active (granted, unexpired) override

Company and account preconditions (frozen company, inactive user) are
enforced by the gates in apps.rbac.gates, not here.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from apps.companies.models import Company
from apps.rbac.models import (
    CompanyUser,
    Permission,
    PermissionOverride,
    RolePermission,
)
from apps.rbac.principals import PrincipalKind

logger = logging.getLogger(__name__)

PermissionPair = Tuple[str, str]

OWNER_WILDCARD = '*.*'


class PermissionResolver:
    """
    Stateless permission engine backed by the RBAC tables.

    Every method reads the store directly; nothing is cached between
    calls, so a revoked binding or an expired override takes effect on
    the next check.
    """

    @classmethod
    def has_permission(cls, principal, module_key: str, permission_key: str) -> bool:
        if principal.kind is PrincipalKind.OWNER:
            return True

        permission = Permission.objects.by_keys(module_key, permission_key)
        if permission is None:
            return False

        # Role grants require an active module and permission; overrides do not
        role_id = CompanyUser.objects.assigned_role_id(principal.id)
        if role_id and permission.is_available and RolePermission.objects.has_binding(role_id, permission):
            return True

        return PermissionOverride.objects.active_for(principal.id, permission).exists()

    @classmethod
    def has_any(cls, principal, pairs: Iterable[PermissionPair]) -> bool:
        """True on the first pair that resolves true."""
        for module_key, permission_key in pairs:
            if cls.has_permission(principal, module_key, permission_key):
                return True
        return False

    @classmethod
    def first_missing(cls, principal, pairs: Iterable[PermissionPair]) -> Optional[PermissionPair]:
        """Return the first pair that resolves false, or None if all pass."""
        for module_key, permission_key in pairs:
            if not cls.has_permission(principal, module_key, permission_key):
                return (module_key, permission_key)
        return None

    @classmethod
    def has_all(cls, principal, pairs: Iterable[PermissionPair]) -> bool:
        return cls.first_missing(principal, pairs) is None

    @classmethod
    def permission_keys(cls, principal) -> List[str]:
        """
        Full resolved permission set as "module.permission" strings.

        Owners get the single wildcard "*.*".
        """
        if principal.kind is PrincipalKind.OWNER:
            return [OWNER_WILDCARD]

        keys = set()

        role_id = CompanyUser.objects.assigned_role_id(principal.id)
        if role_id:
            bound = Permission.objects.active().filter(
                role_permissions__role_id=role_id,
                role_permissions__role__is_active=True,
            ).values_list('module__module_key', 'permission_key')
            keys.update(f"{module}.{perm}" for module, perm in bound)

        overridden = Permission.objects.filter(
            overrides__in=PermissionOverride.objects.active().filter(user_id=principal.id)
        ).values_list('module__module_key', 'permission_key')
        keys.update(f"{module}.{perm}" for module, perm in overridden)

        return sorted(keys)

    @classmethod
    def can_grant_permission(cls, principal, permission_id, company_id) -> bool:
        """
        Delegation rule.

        True for the Owner, for a principal recorded as the company's
        registered owner, or when the principal's active role holds the
        permission with can_grant set.
        """
        if principal.kind is PrincipalKind.OWNER:
            return True

        if Company.objects.is_registered_owner(company_id, principal.id):
            return True

        role_id = CompanyUser.objects.assigned_role_id(principal.id)
        if not role_id:
            return False
        return RolePermission.objects.delegable_by(role_id, permission_id)
