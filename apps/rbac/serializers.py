"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Users and master administrators
- Audit log entries
"""
from rest_framework import serializers
from apps.rbac.models import AuditLogEntry, User


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'is_master_admin', 'is_active', 'created_at']
        read_only_fields = fields


class AdminUserSerializer(UserSerializer):
    """User as listed for master admins, with the number of tenants joined."""

    membership_count = serializers.IntegerField(read_only=True)

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['membership_count']
        read_only_fields = fields


class MasterAdminGrantSerializer(serializers.Serializer):
    """Input for granting master-admin status: a user ID or email."""

    user = serializers.CharField(help_text="User ID or email")


class AuditLogEntrySerializer(serializers.ModelSerializer):
    """
    Serializer for AuditLogEntry.

    The actor's name and email are null when the actor has since been deleted.
    """

    user_id = serializers.UUIDField(read_only=True)
    user_email = serializers.SerializerMethodField()
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = AuditLogEntry
        fields = [
            'id', 'user_id', 'user_email', 'user_name', 'action',
            'target_type', 'target_id', 'details', 'created_at'
        ]
        read_only_fields = fields

    def _actor(self, obj):
        try:
            return obj.user
        except User.DoesNotExist:
            return None

    def get_user_email(self, obj):
        actor = self._actor(obj)
        return actor.email if actor else None

    def get_user_name(self, obj):
        actor = self._actor(obj)
        return actor.name if actor else None
