"""
Identity and audit models.

Implements:
- Global User identity (can belong to many tenants, may be a master admin)
- AuditLogEntry (append-only trail of privileged mutations)
"""
import logging
import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from apps.core.exceptions import ValidationError
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system.
    """

    def master_admins(self):
        """Return users holding the global master-admin flag."""
        return self.filter(is_master_admin=True)

    def by_email(self, email):
        """Find user by email, ignoring case."""
        return self.filter(email__iexact=(email or '').strip()).first()

    def create_user(self, email, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        extra_fields.setdefault('is_active', True)
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.save(using=self._db)
        return user

    def normalize_email(self, email):
        """
        Normalize the email address by lowercasing the domain part.
        """
        email = email or ''
        try:
            email_name, domain_part = email.strip().rsplit('@', 1)
        except ValueError:
            pass
        else:
            email = email_name + '@' + domain_part.lower()
        return email

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity - can belong to multiple tenants.

    Authentication happens upstream (the identity provider issues a JWT);
    authorization happens through tenant memberships and the master-admin flag.
    This is the AUTH_USER_MODEL for the project.
    """

    name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Display name"
    )
    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    is_master_admin = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Global administrator across every tenant"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_master_admin', 'is_active'], name='users_is_mast_6c1f4e_idx'),
        ]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return name or email if name not set."""
        return self.name or self.email

    @property
    def is_authenticated(self):
        """
        Always return True for User instances.
        This is required for Django authentication compatibility.
        """
        return True

    @property
    def is_anonymous(self):
        """
        Always return False for User instances.
        This is required for Django authentication compatibility.
        """
        return False

    def natural_key(self):
        return (self.email,)


class AuditAction(models.TextChoices):
    CREATE_TENANT = 'CREATE_TENANT', 'Create tenant'
    UPDATE_TENANT = 'UPDATE_TENANT', 'Update tenant'
    DELETE_TENANT = 'DELETE_TENANT', 'Delete tenant'
    ADD_TENANT_MEMBER = 'ADD_TENANT_MEMBER', 'Add tenant member'
    REMOVE_TENANT_MEMBER = 'REMOVE_TENANT_MEMBER', 'Remove tenant member'
    UPDATE_TENANT_MEMBER_ROLE = 'UPDATE_TENANT_MEMBER_ROLE', 'Update tenant member role'
    GRANT_MASTER_ADMIN = 'GRANT_MASTER_ADMIN', 'Grant master admin'
    REVOKE_MASTER_ADMIN = 'REVOKE_MASTER_ADMIN', 'Revoke master admin'


class TargetType(models.TextChoices):
    TENANT = 'TENANT', 'Tenant'
    TENANT_MEMBER = 'TENANT_MEMBER', 'Tenant member'
    USER = 'USER', 'User'


class AuditLogQuerySet(models.QuerySet):
    """Queryset that refuses bulk rewrites of the audit trail."""

    def update(self, **kwargs):
        raise ValidationError('audit log entries are append-only')

    def delete(self):
        raise ValidationError('audit log entries are append-only')


class AuditLogEntry(models.Model):
    """
    Append-only record of a privileged mutation.

    `user` is the actor. It is a loose reference: deleting the actor leaves
    the entry and its user_id untouched.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    user = models.ForeignKey(
        'rbac.User',
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='audit_log_entries',
        help_text="User who performed the action"
    )
    action = models.CharField(
        max_length=50,
        choices=AuditAction.choices,
        db_index=True
    )
    target_type = models.CharField(
        max_length=20,
        choices=TargetType.choices,
        db_index=True
    )
    target_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="ID of target entity (type given by target_type)"
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True
    )

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'admin_audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'created_at'], name='admin_audit_user_id_3b9e1a_idx'),
            models.Index(fields=['action', 'created_at'], name='admin_audit_action_8d2c47_idx'),
            models.Index(fields=['target_type', 'target_id'], name='admin_audit_target__f05a9b_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} - {self.action} - {self.target_type}:{self.target_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('audit log entries are append-only')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('audit log entries are append-only')
