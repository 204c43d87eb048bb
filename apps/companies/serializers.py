"""
Company serializers.
"""
from rest_framework import serializers
from apps.companies.models import Company


class CompanySerializer(serializers.ModelSerializer):

    class Meta:
        model = Company
        fields = [
            'id', 'owner_id', 'registered_owner_user_id', 'name', 'email', 'is_active',
            'is_frozen', 'frozen_at', 'frozen_reason', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class FreezeSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)
