"""
Serializers for tenant and membership API endpoints.
"""
from rest_framework import serializers
from apps.rbac.roles import TENANT_ROLE_CHOICES
from apps.tenants.models import Tenant, TenantMember


class TenantSerializer(serializers.ModelSerializer):
    """Serializer for Tenant."""

    class Meta:
        model = Tenant
        fields = ['id', 'name', 'slug', 'domain', 'default_role', 'created_at', 'updated_at']
        read_only_fields = fields


class UserTenantSerializer(TenantSerializer):
    """Tenant as listed for the caller, with the caller's role in it."""

    role = serializers.CharField(read_only=True, allow_null=True)

    class Meta(TenantSerializer.Meta):
        fields = TenantSerializer.Meta.fields + ['role']
        read_only_fields = fields


class AdminTenantSerializer(TenantSerializer):
    """Tenant as listed for master admins, with its member count."""

    member_count = serializers.IntegerField(read_only=True)

    class Meta(TenantSerializer.Meta):
        fields = TenantSerializer.Meta.fields + ['member_count']
        read_only_fields = fields


class TenantCreateSerializer(serializers.Serializer):
    """Input for tenant creation."""

    name = serializers.CharField(max_length=255)
    slug = serializers.SlugField(max_length=100, required=False, allow_blank=True)
    domain = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    default_role = serializers.ChoiceField(choices=TENANT_ROLE_CHOICES, required=False)


class TenantUpdateSerializer(serializers.Serializer):
    """Input for partial tenant updates; only supplied fields are changed."""

    name = serializers.CharField(max_length=255, required=False)
    slug = serializers.SlugField(max_length=100, required=False)
    domain = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    default_role = serializers.ChoiceField(choices=TENANT_ROLE_CHOICES, required=False)


class TenantMemberSerializer(serializers.ModelSerializer):
    """Serializer for TenantMember with embedded user summary."""

    user_id = serializers.UUIDField(source='user.id', read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)

    class Meta:
        model = TenantMember
        fields = ['id', 'tenant', 'user_id', 'user_email', 'user_name', 'role', 'created_at', 'updated_at']
        read_only_fields = fields


class MemberAddSerializer(serializers.Serializer):
    """Input for adding a member: a user ID or email, and an optional role."""

    user = serializers.CharField(help_text="User ID or email")
    role = serializers.ChoiceField(choices=TENANT_ROLE_CHOICES, required=False)


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=TENANT_ROLE_CHOICES)
