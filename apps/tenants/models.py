"""
Tenant models.

A Tenant is an isolated organization; TenantMember links a global User to
a tenant with one role.
"""
from django.conf import settings
from django.db import models
from apps.core.models import BaseModel
from apps.rbac.roles import Role, TENANT_ROLE_CHOICES


class Tenant(BaseModel):
    """
    Tenant model representing an isolated organization.

    Created, updated and deleted only by master admins. Deleting a tenant
    deletes its memberships.
    """

    name = models.CharField(
        max_length=255,
        help_text="Organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    domain = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Organization domain (optional)"
    )
    default_role = models.CharField(
        max_length=20,
        choices=TENANT_ROLE_CHOICES,
        default=Role.MEMBER,
        help_text="Role assigned to members added without an explicit role"
    )

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.slug})"


class TenantMemberManager(models.Manager):
    """Manager for TenantMember queries."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_user(self, user):
        return self.filter(user=user)

    def get_membership(self, tenant, user, for_update=False):
        """The (tenant, user) membership or None; row-locked when for_update is set."""
        queryset = self.select_for_update() if for_update else self
        return queryset.filter(tenant=tenant, user=user).first()


class TenantMember(BaseModel):
    """
    A user's membership in a tenant, with exactly one role.
    """

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='members'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tenant_memberships'
    )
    role = models.CharField(
        max_length=20,
        choices=TENANT_ROLE_CHOICES,
        default=Role.MEMBER,
        db_index=True
    )

    objects = TenantMemberManager()

    class Meta:
        db_table = 'tenant_members'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'user'], name='unique_tenant_member'),
        ]
        indexes = [
            models.Index(fields=['user', 'tenant'], name='tenant_memb_user_id_9a4d2e_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.tenant_id} ({self.role})"
