"""
Authorization gates.

Each gate takes an already-resolved principal (or None) and either
returns normally or raises the matching ClientDeskError. Gates fail
closed: a database error while evaluating one becomes
PermissionCheckError, never a pass.
"""
import logging
from functools import wraps

from django.db import DatabaseError

from apps.companies.models import Company
from apps.core.exceptions import (
    CompanyFrozen,
    OwnerRequired,
    PermissionCheckError,
    PermissionDenied,
    Unauthorized,
    UserInactive,
)
from apps.core.logging import SecurityLogger
from apps.rbac.models import CompanyUser
from apps.rbac.principals import PrincipalKind
from apps.rbac.resolver import PermissionResolver

logger = logging.getLogger(__name__)


def fail_closed(func):
    """Turn backing-store failures inside a gate into PermissionCheckError."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.error(
                f"Permission check failed in {func.__name__}: {e}",
                exc_info=True
            )
            SecurityLogger.log_event('permission_check_error', level='error', gate=func.__name__)
            raise PermissionCheckError()
    return wrapper


def require_authenticated(principal):
    if principal is None:
        raise Unauthorized()
    return principal


def _check_account_state(principal):
    """Company-frozen and user-active preconditions for company users."""
    user = CompanyUser.objects.select_related('company').filter(id=principal.id).first()
    if user is not None and user.company.is_frozen:
        raise CompanyFrozen()
    if user is None or not user.is_active or not principal.is_active:
        raise UserInactive()


def _deny(principal, required=None, missing=None, required_any=None, path=None):
    pairs = [required] if required else [missing] if missing else list(required_any or [])
    logger.warning(
        f"Permission denied for principal {principal.id}",
        extra={
            'principal_id': str(principal.id),
            'company_id': str(principal.company_id) if principal.company_id else None,
            'required': [f"{m}.{p}" for m, p in pairs],
        }
    )
    SecurityLogger.log_permission_denied(principal, PermissionDenied.code, pairs, path)
    if missing:
        return PermissionDenied(
            f"Access denied. Missing permission: {missing[0]}.{missing[1]}",
            missing=missing,
        )
    if required:
        return PermissionDenied(
            f"Access denied. Required permission: {required[0]}.{required[1]}",
            required=required,
        )
    return PermissionDenied(required_any=required_any)


@fail_closed
def require_active_account(principal):
    """Authenticated, and for company users: company not frozen, user active."""
    require_authenticated(principal)
    if principal.kind is PrincipalKind.OWNER:
        return principal
    _check_account_state(principal)
    return principal


@fail_closed
def require_permission(principal, module_key, permission_key, path=None):
    require_authenticated(principal)
    if principal.kind is PrincipalKind.OWNER:
        return principal

    _check_account_state(principal)
    if not PermissionResolver.has_permission(principal, module_key, permission_key):
        raise _deny(principal, required=(module_key, permission_key), path=path)
    return principal


@fail_closed
def require_any_permission(principal, pairs, path=None):
    require_authenticated(principal)
    if principal.kind is PrincipalKind.OWNER:
        return principal

    _check_account_state(principal)
    pairs = list(pairs)
    if not PermissionResolver.has_any(principal, pairs):
        raise _deny(principal, required_any=pairs, path=path)
    return principal


@fail_closed
def require_all_permissions(principal, pairs, path=None):
    require_authenticated(principal)
    if principal.kind is PrincipalKind.OWNER:
        return principal

    _check_account_state(principal)
    missing = PermissionResolver.first_missing(principal, pairs)
    if missing is not None:
        raise _deny(principal, missing=missing, path=path)
    return principal


@fail_closed
def require_owner(principal, company_id=None):
    """
    Pass only for the Owner.

    A company principal recorded as the registered owner of
    ``company_id`` is accepted as well.
    """
    require_authenticated(principal)
    if principal.kind is PrincipalKind.OWNER:
        return principal
    if company_id is not None and Company.objects.is_registered_owner(company_id, principal.id):
        return principal
    SecurityLogger.log_permission_denied(principal, OwnerRequired.code)
    raise OwnerRequired()


@fail_closed
def attach_user_permissions(principal):
    """Resolved "module.permission" keys for a principal ("*.*" for the Owner)."""
    require_authenticated(principal)
    return PermissionResolver.permission_keys(principal)
