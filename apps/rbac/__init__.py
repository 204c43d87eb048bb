"""
RBAC (Role-Based Access Control) application.

Provides company-scoped access control with:
- Owner and company-user principals resolved from bearer credentials
- Per-company roles bound to a global module/permission catalog
- Delegation through can_grant bindings
- Temporary per-user permission overrides
- Append-only audit logging of every RBAC mutation
"""
