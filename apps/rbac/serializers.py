"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Roles (list/detail output, create/update/clone input)
- Role permission bindings and user role assignment input
- Permission overrides
- Audit log entries and query filters
"""
from rest_framework import serializers
from apps.rbac.models import AuditLogEntry, PermissionOverride, Role


# ===== ROLE SERIALIZERS =====

class RoleSerializer(serializers.ModelSerializer):
    """Role output with optional annotated counts."""

    parent_role_name = serializers.CharField(source='parent_role.role_name', read_only=True, default=None)
    user_count = serializers.IntegerField(read_only=True, required=False)
    permission_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Role
        fields = [
            'id', 'company_id', 'role_key', 'role_name', 'description',
            'parent_role_id', 'parent_role_name', 'hierarchy_level',
            'is_system_role', 'is_active', 'created_by',
            'user_count', 'permission_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if self.context.get('include_permissions'):
            data['permissions'] = sorted(b.permission.code for b in instance.role_permissions.all())
        return data


class RoleCreateSerializer(serializers.Serializer):
    """Input for role creation."""

    role_key = serializers.CharField(max_length=100)
    role_name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    parent_role_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    hierarchy_level = serializers.IntegerField(required=False, default=0)
    is_system_role = serializers.BooleanField(required=False, default=False)
    permission_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        default=list
    )


class RoleUpdateSerializer(serializers.Serializer):
    """
    Input for role updates.

    Only mutable fields are declared; anything else in the body
    (role_key, company_id, is_system_role ...) is dropped here.
    """

    role_name = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    parent_role_id = serializers.UUIDField(required=False, allow_null=True)
    hierarchy_level = serializers.IntegerField(required=False)
    is_active = serializers.BooleanField(required=False)


class RoleCloneSerializer(serializers.Serializer):
    new_role_key = serializers.CharField(max_length=100)
    new_role_name = serializers.CharField(max_length=100)
    include_can_grant = serializers.BooleanField(required=False, default=False)


class RoleCompareSerializer(serializers.Serializer):
    """Comma-separated role ids from the query string."""

    role_ids = serializers.CharField()

    def validate_role_ids(self, value):
        return [role_id.strip() for role_id in value.split(',') if role_id.strip()]


# ===== BINDING / ASSIGNMENT SERIALIZERS =====

class PermissionIdsSerializer(serializers.Serializer):
    """Input for bulk assign/revoke of role permissions."""

    permission_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False
    )
    can_grant = serializers.BooleanField(required=False, default=False)


class AssignRoleSerializer(serializers.Serializer):
    role_id = serializers.UUIDField()


# ===== OVERRIDE SERIALIZERS =====

class OverrideGrantSerializer(serializers.Serializer):
    """Input for granting a permission override."""

    permission_id = serializers.UUIDField()
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class OverrideRevokeSerializer(serializers.Serializer):
    permission_id = serializers.UUIDField()


class PermissionOverrideSerializer(serializers.ModelSerializer):

    class Meta:
        model = PermissionOverride
        fields = [
            'id', 'user_id', 'permission_id', 'is_granted', 'expires_at',
            'override_reason', 'overridden_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


# ===== AUDIT SERIALIZERS =====

class AuditLogEntrySerializer(serializers.ModelSerializer):
    """Serializer for audit log entries."""

    class Meta:
        model = AuditLogEntry
        fields = [
            'id', 'company_id', 'action_type', 'target_role_id', 'target_user_id',
            'performed_by', 'performed_by_kind', 'old_value', 'new_value',
            'request_id', 'created_at',
        ]
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    """Query-string filters for the audit log."""

    action_type = serializers.ChoiceField(choices=AuditLogEntry.ActionType.choices, required=False)
    target_user_id = serializers.UUIDField(required=False)
    target_role_id = serializers.UUIDField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError("start_date must not be after end_date")
        return attrs


class PermissionCheckSerializer(serializers.Serializer):
    module_key = serializers.CharField(max_length=50)
    permission_key = serializers.CharField(max_length=100)
