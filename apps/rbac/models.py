"""
RBAC models for company-scoped access control.

Implements:
- Owner identity (super-user outside any company)
- CompanyUser (company-scoped principal record, at most one role)
- Module / Permission (global permission catalog)
- Role (per-company role definitions with hierarchy metadata)
- RolePermission (maps permissions to roles, with delegation flag)
- PermissionOverride (per-user temporary grants)
- AuditLogEntry (append-only history of RBAC mutations)
"""
import logging
from django.db import models
from django.utils import timezone
from apps.core.middleware import current_request_id
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class OwnerManager(models.Manager):

    def by_email(self, email):
        """Find owner by email."""
        return self.filter(email__iexact=email).first()


class Owner(BaseModel):
    """
    Super-user identity.

    Owners live in their own identity space: they are never rows of a
    company's user table and are never checked against role tables.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="Owner email address"
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(
        default=True,
        help_text="Whether the owner account is active"
    )

    objects = OwnerManager()

    class Meta:
        db_table = 'owners'

    def __str__(self):
        return self.email


class CompanyUserManager(models.Manager):
    """Manager for company-scoped user queries."""

    def for_company(self, company_id):
        """Get all users of a company."""
        return self.filter(company_id=company_id)

    def active(self):
        return self.filter(is_active=True)

    def with_role(self, role_id):
        """Users currently assigned to a role."""
        return self.filter(assigned_role_id=role_id)

    def assigned_role_id(self, user_id):
        """Current assigned role id for a user, or None."""
        return self.filter(id=user_id).values_list('assigned_role_id', flat=True).first()


class CompanyUser(BaseModel):
    """
    A user belonging to exactly one company.

    A user holds at most one role. A user with no role has no
    role-derived permissions but may still hold overrides.
    """

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='users',
        db_index=True,
        help_text="Company this user belongs to"
    )
    email = models.EmailField(
        help_text="User email address (unique within company)"
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive users cannot authenticate"
    )

    # Role assignment
    assigned_role = models.ForeignKey(
        'Role',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='assigned_users',
        help_text="Role currently held by this user"
    )
    role_assigned_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the current role was assigned"
    )
    role_assigned_by = models.UUIDField(
        null=True,
        blank=True,
        help_text="Principal id that assigned the current role"
    )

    objects = CompanyUserManager()

    class Meta:
        db_table = 'company_users'
        unique_together = [('company', 'email')]
        ordering = ['email']
        indexes = [
            models.Index(fields=['company', 'is_active']),
            models.Index(fields=['assigned_role']),
        ]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email


class ModuleManager(models.Manager):

    def active(self):
        return self.filter(is_active=True)

    def by_key(self, module_key):
        return self.filter(module_key=module_key).first()


class Module(BaseModel):
    """
    Functional area grouping related permissions (e.g. 'products').

    Created by catalog seeding; essentially immutable at runtime.
    """

    module_key = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        help_text="Stable module key (e.g., 'products')"
    )
    module_name = models.CharField(
        max_length=100,
        help_text="Human-readable module name"
    )
    module_group = models.CharField(
        max_length=50,
        blank=True,
        db_index=True,
        help_text="UI grouping (e.g., 'Sales', 'Administration')"
    )
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)

    objects = ModuleManager()

    class Meta:
        db_table = 'system_modules'
        ordering = ['sort_order', 'module_key']

    def __str__(self):
        return self.module_key


class PermissionManager(models.Manager):
    """Manager for catalog permission queries."""

    def active(self):
        """Active permissions whose module is active as well."""
        return self.filter(is_active=True, module__is_active=True)

    def by_keys(self, module_key, permission_key):
        """
        Find a permission by its (module_key, permission_key) pair,
        active or not. Callers decide whether inactive entries count.
        """
        return self.filter(
            module__module_key=module_key,
            permission_key=permission_key
        ).select_related('module').first()

    def get_or_create_permission(self, module, permission_key, permission_name, description=''):
        """Get or create permission by key within a module (idempotent)."""
        permission, created = self.get_or_create(
            module=module,
            permission_key=permission_key,
            defaults={
                'permission_name': permission_name,
                'description': description,
            }
        )
        return permission, created


class Permission(BaseModel):
    """
    Action within a module (e.g. 'create_product').

    Referenced everywhere as the pair ``module.permission``.
    """

    module = models.ForeignKey(
        Module,
        on_delete=models.CASCADE,
        related_name='permissions',
        db_index=True,
        help_text="Module this permission belongs to"
    )
    permission_key = models.CharField(
        max_length=100,
        help_text="Permission key, unique within module (e.g., 'create_product')"
    )
    permission_name = models.CharField(
        max_length=100,
        help_text="Human-readable permission name"
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    objects = PermissionManager()

    class Meta:
        db_table = 'system_permissions'
        unique_together = [('module', 'permission_key')]
        ordering = ['module__sort_order', 'permission_key']

    def __str__(self):
        return self.code

    @property
    def code(self):
        return f"{self.module.module_key}.{self.permission_key}"

    @property
    def is_available(self):
        """Both the permission and its module are active."""
        return self.is_active and self.module.is_active


class RoleManager(models.Manager):
    """Manager for company-scoped role queries."""

    def for_company(self, company_id):
        """Get all roles for a specific company."""
        return self.filter(company_id=company_id)

    def active(self, company_id):
        return self.for_company(company_id).filter(is_active=True)

    def by_key(self, company_id, role_key):
        return self.for_company(company_id).filter(role_key=role_key).first()

    def key_exists(self, company_id, role_key):
        return self.for_company(company_id).filter(role_key=role_key).exists()


class Role(BaseModel):
    """
    Company-scoped named bundle of permissions.

    ``parent_role`` and ``hierarchy_level`` are display metadata only;
    permissions are never inherited through the hierarchy.
    """

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True,
        help_text="Company this role belongs to"
    )
    role_key = models.CharField(
        max_length=100,
        help_text="Role key, unique within company and immutable"
    )
    role_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    parent_role = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='child_roles',
        help_text="Parent role for hierarchy display"
    )
    hierarchy_level = models.IntegerField(
        default=0,
        help_text="Sort/compare level; not used for enforcement"
    )
    is_system_role = models.BooleanField(
        default=False,
        db_index=True,
        help_text="System roles cannot be updated or deleted"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.UUIDField(
        null=True,
        blank=True,
        help_text="Principal id that created the role"
    )

    objects = RoleManager()

    class Meta:
        db_table = 'company_roles'
        unique_together = [('company', 'role_key')]
        ordering = ['-hierarchy_level', '-created_at']
        indexes = [
            models.Index(fields=['company', 'is_active']),
            models.Index(fields=['company', 'role_key']),
        ]

    def __str__(self):
        return f"{self.role_key} ({self.company_id})"


class RolePermissionManager(models.Manager):
    """Manager for RolePermission queries."""

    def for_role(self, role_id):
        """Get all bindings for a role."""
        return self.filter(role_id=role_id)

    def has_binding(self, role_id, permission):
        """
        Whether an active role grants an (already active) permission.
        """
        return self.filter(
            role_id=role_id,
            role__is_active=True,
            permission=permission,
        ).exists()

    def delegable_by(self, role_id, permission_id):
        """Whether the role holds permission_id with can_grant set."""
        return self.filter(
            role_id=role_id,
            role__is_active=True,
            permission_id=permission_id,
            can_grant=True,
        ).exists()


class RolePermission(BaseModel):
    """
    Binding of one permission to one role.

    ``can_grant`` lets holders of the role grant the same permission to
    other roles and users.
    """

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Role that grants this permission"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Permission being granted"
    )
    can_grant = models.BooleanField(
        default=False,
        help_text="Holders may delegate this permission"
    )
    granted_by = models.UUIDField(null=True, blank=True)
    granted_at = models.DateTimeField(default=timezone.now)

    objects = RolePermissionManager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]
        indexes = [
            models.Index(fields=['role']),
            models.Index(fields=['permission']),
        ]

    def __str__(self):
        return f"{self.role.role_key} -> {self.permission_id}"


class PermissionOverrideManager(models.Manager):
    """Manager for per-user permission overrides."""

    def for_user(self, user_id):
        return self.filter(user_id=user_id)

    def active(self):
        """Granted overrides that have not expired."""
        now = timezone.now()
        return self.filter(is_granted=True).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )

    def active_for(self, user_id, permission):
        return self.active().filter(user_id=user_id, permission=permission)

    def expired(self):
        return self.filter(expires_at__isnull=False, expires_at__lte=timezone.now())


class PermissionOverride(BaseModel):
    """
    Temporary user-specific grant of one permission, independent of role.

    An override whose ``expires_at`` has passed is ignored by the
    resolver whether or not it has been purged yet.
    """

    user = models.ForeignKey(
        CompanyUser,
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='overrides',
        db_index=True
    )
    is_granted = models.BooleanField(default=True)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Null means no expiry"
    )
    override_reason = models.TextField(blank=True)
    overridden_by = models.UUIDField(null=True, blank=True)

    objects = PermissionOverrideManager()

    class Meta:
        db_table = 'user_permission_overrides'
        unique_together = [('user', 'permission')]
        indexes = [
            models.Index(fields=['user', 'is_granted']),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.permission_id}"

    def is_active(self):
        """Whether this override currently grants its permission."""
        if not self.is_granted:
            return False
        return self.expires_at is None or self.expires_at > timezone.now()


class AuditLogEntryQuerySet(models.QuerySet):
    """Chainable audit log filters."""

    def for_company(self, company_id):
        return self.filter(company_id=company_id)

    def by_action(self, action_type):
        return self.filter(action_type=action_type)

    def for_target_role(self, role_id):
        return self.filter(target_role_id=role_id)

    def for_target_user(self, user_id):
        return self.filter(target_user_id=user_id)

    def between(self, start_date=None, end_date=None):
        """Entries created within inclusive calendar-day bounds."""
        queryset = self
        if start_date:
            queryset = queryset.filter(created_at__date__gte=start_date)
        if end_date:
            queryset = queryset.filter(created_at__date__lte=end_date)
        return queryset


class AuditLogEntryManager(models.Manager):
    """Manager for audit log queries with company scoping."""

    def get_queryset(self):
        return AuditLogEntryQuerySet(self.model, using=self._db)

    def for_company(self, company_id):
        return self.get_queryset().for_company(company_id)


class AuditLogEntry(BaseModel):
    """
    Append-only record of an RBAC mutation.

    Entries are written inside the same transaction as the change they
    describe and are never updated or deleted by the application.
    """

    class ActionType(models.TextChoices):
        ROLE_CREATED = 'ROLE_CREATED'
        ROLE_UPDATED = 'ROLE_UPDATED'
        ROLE_DELETED = 'ROLE_DELETED'
        PERMISSION_GRANTED = 'PERMISSION_GRANTED'
        PERMISSION_REVOKED = 'PERMISSION_REVOKED'
        USER_ROLE_ASSIGNED = 'USER_ROLE_ASSIGNED'
        USER_ROLE_REVOKED = 'USER_ROLE_REVOKED'
        OVERRIDE_GRANTED = 'OVERRIDE_GRANTED'
        OVERRIDE_REVOKED = 'OVERRIDE_REVOKED'

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='audit_entries',
        db_index=True
    )
    action_type = models.CharField(
        max_length=30,
        choices=ActionType.choices,
        db_index=True
    )
    # Plain ids: targets may be deleted while their history stays
    target_role_id = models.UUIDField(null=True, blank=True, db_index=True)
    target_user_id = models.UUIDField(null=True, blank=True, db_index=True)
    performed_by = models.UUIDField(help_text="Principal id that performed the action")
    performed_by_kind = models.CharField(max_length=10, help_text="'owner' or 'user'")
    old_value = models.JSONField(null=True, blank=True)
    new_value = models.JSONField(null=True, blank=True)
    request_id = models.CharField(max_length=64, blank=True)

    objects = AuditLogEntryManager()

    class Meta:
        db_table = 'permission_audit_log'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'created_at']),
            models.Index(fields=['company', 'action_type', 'created_at']),
        ]

    def __str__(self):
        return f"{self.company_id} - {self.action_type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit log entries are append-only")

    @classmethod
    def log_action(cls, company_id, action_type, principal, target_role_id=None,
                   target_user_id=None, old_value=None, new_value=None, request_id=''):
        """
        Create an audit log entry.

        Must be called inside the caller's transaction; failures propagate
        so the surrounding mutation rolls back with it.
        """
        return cls.objects.create(
            company_id=company_id,
            action_type=action_type,
            target_role_id=target_role_id,
            target_user_id=target_user_id,
            performed_by=principal.id,
            performed_by_kind=principal.kind.value,
            old_value=old_value,
            new_value=new_value,
            request_id=request_id or current_request_id() or '',
        )
