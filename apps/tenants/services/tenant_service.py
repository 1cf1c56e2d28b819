"""
Tenant management service.

Handles tenant lifecycle and membership operations:
- Tenant create, update and delete (master admins only)
- Member add, remove and role change (master admins only)
- Self-service leave
- Tenant and member listings

Every mutation except leave records one audit entry in its transaction.
"""
import logging
import uuid
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_slug
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils.text import slugify

from apps.core.exceptions import NotFoundError, ValidationError
from apps.rbac.models import AuditAction, TargetType, User
from apps.rbac.roles import Action, Resource, Role, TENANT_ROLES
from apps.rbac.services import (
    AccessContext, AccessService, AuditService, MasterAdminService,
    PolicyService, PrivilegedMutationGuard, privileged_transaction,
)
from apps.tenants.models import Tenant, TenantMember

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'slug', 'domain', 'default_role')


class TenantService:
    """
    Service for tenant lifecycle and membership management.
    """

    @staticmethod
    def _validate_role(role) -> str:
        if role not in TENANT_ROLES:
            raise ValidationError(
                'Invalid role',
                details={'role': str(role), 'allowed': [str(r.value) for r in TENANT_ROLES]}
            )
        return str(getattr(role, 'value', role))

    @staticmethod
    def _validate_name(name) -> str:
        name = (name or '').strip()
        if not name:
            raise ValidationError('Tenant name is required', details={'name': name})
        return name

    @staticmethod
    def _is_uuid(value) -> bool:
        try:
            uuid.UUID(str(value))
        except ValueError:
            return False
        return True

    @classmethod
    def _validate_slug(cls, slug, exclude_id=None) -> str:
        slug = (slug or '').strip()
        try:
            validate_slug(slug)
        except DjangoValidationError:
            raise ValidationError('Slug must be URL-safe (letters, numbers, hyphens, underscores)',
                                  details={'slug': slug})
        # Tenant keys that parse as UUIDs resolve by id
        if cls._is_uuid(slug):
            raise ValidationError('Slug must not be a UUID', details={'slug': slug})

        taken = Tenant.objects.filter(slug=slug)
        if exclude_id:
            taken = taken.exclude(id=exclude_id)
        if taken.exists():
            raise ValidationError('Slug is already in use', details={'slug': slug})
        return slug

    @classmethod
    def _derive_slug(cls, name: str) -> str:
        base_slug = slugify(name) or 'tenant'
        if cls._is_uuid(base_slug):
            base_slug = f"tenant-{base_slug}"
        slug = base_slug
        counter = 1
        while Tenant.objects.filter(slug=slug).exists():
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    @staticmethod
    def _snapshot(tenant: Tenant) -> Dict[str, Any]:
        return {field: getattr(tenant, field) for field in UPDATABLE_FIELDS}

    @staticmethod
    def _get_member(tenant: Tenant, member_id) -> TenantMember:
        """
        Load a membership by ID and check it belongs to the tenant.

        Raises:
            NotFoundError: no membership with that ID
            ValidationError: the membership belongs to another tenant
        """
        try:
            member_uuid = uuid.UUID(str(member_id))
        except ValueError:
            raise NotFoundError('Tenant member not found', details={'member_id': str(member_id)})

        member = (
            TenantMember.objects.select_for_update()
            .select_related('user')
            .filter(id=member_uuid)
            .first()
        )
        if member is None:
            raise NotFoundError('Tenant member not found', details={'member_id': str(member_id)})
        if member.tenant_id != tenant.id:
            raise ValidationError('Member does not belong to this tenant',
                                  details={'member_id': str(member_id), 'tenant': tenant.slug})
        return member

    @classmethod
    def create_tenant(cls, actor: User, name: str, slug: Optional[str] = None,
                      domain: Optional[str] = None, default_role=Role.MEMBER) -> Tenant:
        """
        Create a tenant.

        The slug is derived from the name when not supplied; a supplied slug
        must be URL-safe and unused.

        Raises:
            AuthorizationError: actor is not a master admin
            ValidationError: invalid name, slug or default role
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'create_tenant')
        AccessService.authorize_system(actor, Resource.ADMIN_TENANTS, Action.CREATE)

        name = cls._validate_name(name)
        default_role = cls._validate_role(default_role)

        with privileged_transaction():
            slug = cls._validate_slug(slug) if slug else cls._derive_slug(name)

            try:
                tenant = Tenant.objects.create(
                    name=name,
                    slug=slug,
                    domain=domain or None,
                    default_role=default_role,
                )
            except IntegrityError:
                # Taken by a concurrent create after the check above
                raise ValidationError('Slug is already in use', details={'slug': slug})

            AuditService.record(
                actor.id,
                AuditAction.CREATE_TENANT,
                TargetType.TENANT,
                tenant.id,
                {'name': tenant.name, 'slug': tenant.slug}
            )

        logger.info(
            f"Tenant {tenant.slug} created by {actor.id}",
            extra={'tenant_id': str(tenant.id), 'actor_id': str(actor.id)}
        )
        return tenant

    @classmethod
    def update_tenant(cls, actor: User, tenant_key, data: Dict[str, Any]) -> Tenant:
        """
        Update name, slug, domain or default_role of a tenant.

        Raises:
            AuthorizationError: actor is not a master admin
            NotFoundError: tenant does not exist
            ValidationError: unknown or invalid fields
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'update_tenant')
        context = AccessService.authorize(actor, tenant_key, Resource.TENANT, Action.UPDATE)

        data = dict(data or {})
        unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError('Unknown tenant fields', details={'fields': unknown})
        if not data:
            raise ValidationError('No tenant fields supplied')

        with privileged_transaction():
            tenant = Tenant.objects.select_for_update().get(pk=context.tenant.pk)
            before = cls._snapshot(tenant)

            if 'name' in data:
                tenant.name = cls._validate_name(data['name'])
            if 'slug' in data and data['slug'] != tenant.slug:
                tenant.slug = cls._validate_slug(data['slug'], exclude_id=tenant.id)
            if 'domain' in data:
                tenant.domain = data['domain'] or None
            if 'default_role' in data:
                tenant.default_role = cls._validate_role(data['default_role'])

            try:
                tenant.save()
            except IntegrityError:
                raise ValidationError('Slug is already in use', details={'slug': tenant.slug})

            AuditService.record(
                actor.id,
                AuditAction.UPDATE_TENANT,
                TargetType.TENANT,
                tenant.id,
                {
                    'id': str(tenant.id),
                    'slug': tenant.slug,
                    'before_update': before,
                    'after_update': cls._snapshot(tenant),
                }
            )

        logger.info(
            f"Tenant {tenant.slug} updated by {actor.id}",
            extra={'tenant_id': str(tenant.id), 'actor_id': str(actor.id)}
        )
        return tenant

    @classmethod
    def delete_tenant(cls, actor: User, tenant_key):
        """
        Delete a tenant and, by cascade, its memberships.
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'delete_tenant')
        context = AccessService.authorize(actor, tenant_key, Resource.TENANT, Action.DELETE)
        tenant = context.tenant

        with privileged_transaction():
            AuditService.record(
                actor.id,
                AuditAction.DELETE_TENANT,
                TargetType.TENANT,
                tenant.id,
                {'id': str(tenant.id), 'name': tenant.name, 'slug': tenant.slug}
            )
            tenant_id = tenant.id
            tenant.delete()

        logger.info(
            f"Tenant {tenant_id} deleted by {actor.id}",
            extra={'tenant_id': str(tenant_id), 'actor_id': str(actor.id)}
        )

    @classmethod
    def add_member(cls, actor: User, tenant_key, user_key, role=None) -> TenantMember:
        """
        Add a user to a tenant, or change their role if already a member.

        Without a role the tenant's default_role applies.

        Raises:
            AuthorizationError: actor is not a master admin
            NotFoundError: tenant or user does not exist
            ValidationError: invalid role
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'add_tenant_member')
        context = AccessService.authorize(actor, tenant_key, Resource.TENANT_MEMBER, Action.CREATE)
        tenant = context.tenant

        role = cls._validate_role(role if role is not None else tenant.default_role)
        user = MasterAdminService.get_user(user_key)

        with privileged_transaction():
            member = TenantMember.objects.get_membership(tenant, user, for_update=True)
            previous_role = member.role if member else None

            if member is None:
                try:
                    with transaction.atomic():
                        member = TenantMember.objects.create(tenant=tenant, user=user, role=role)
                except IntegrityError:
                    # Added concurrently since the read above; update that row instead
                    member = TenantMember.objects.select_for_update().get(tenant=tenant, user=user)
                    previous_role = member.role

            if previous_role is not None:
                member.role = role
                member.save(update_fields=['role', 'updated_at'])

            AuditService.record(
                actor.id,
                AuditAction.ADD_TENANT_MEMBER,
                TargetType.TENANT_MEMBER,
                member.id,
                {
                    'tenant_id': str(tenant.id),
                    'user_id': str(user.id),
                    'role': role,
                    'previous_role': previous_role,
                }
            )

        logger.info(
            f"User {user.id} added to tenant {tenant.slug} as {role}",
            extra={'tenant_id': str(tenant.id), 'actor_id': str(actor.id), 'user_id': str(user.id)}
        )
        return member

    @classmethod
    def remove_member(cls, actor: User, tenant_key, member_id):
        """Remove a membership from a tenant."""
        PrivilegedMutationGuard.require_master_admin(actor, 'remove_tenant_member')
        context = AccessService.authorize(actor, tenant_key, Resource.TENANT_MEMBER, Action.DELETE)
        tenant = context.tenant

        with privileged_transaction():
            member = cls._get_member(tenant, member_id)

            AuditService.record(
                actor.id,
                AuditAction.REMOVE_TENANT_MEMBER,
                TargetType.TENANT_MEMBER,
                member.id,
                {
                    'tenant_id': str(tenant.id),
                    'user_id': str(member.user_id),
                    'user_email': member.user.email,
                    'role': member.role,
                }
            )
            member.delete()

        logger.info(
            f"Member {member_id} removed from tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id), 'actor_id': str(actor.id)}
        )

    @classmethod
    def update_member_role(cls, actor: User, tenant_key, member_id, role) -> TenantMember:
        """
        Change a member's role.

        Raises:
            NotFoundError: tenant or membership does not exist
            ValidationError: membership belongs to another tenant, or invalid role
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'update_tenant_member_role')
        context = AccessService.authorize(actor, tenant_key, Resource.TENANT_MEMBER, Action.UPDATE)
        tenant = context.tenant
        role = cls._validate_role(role)

        with privileged_transaction():
            member = cls._get_member(tenant, member_id)
            previous_role = member.role

            member.role = role
            member.save(update_fields=['role', 'updated_at'])

            AuditService.record(
                actor.id,
                AuditAction.UPDATE_TENANT_MEMBER_ROLE,
                TargetType.TENANT_MEMBER,
                member.id,
                {
                    'tenant_id': str(tenant.id),
                    'user_id': str(member.user_id),
                    'user_email': member.user.email,
                    'previous_role': previous_role,
                    'new_role': role,
                }
            )

        return member

    @classmethod
    def leave_tenant(cls, user: User, tenant_key):
        """
        Remove the caller's own membership. Not audited.

        Raises:
            AuthorizationError: caller is not a member
            NotFoundError: tenant does not exist, or a master admin holds no membership in it
        """
        context = AccessService.authorize(user, tenant_key, Resource.TENANT, Action.LEAVE)
        if context.membership is None:
            raise NotFoundError('You are not a member of this tenant', details={'tenant': context.tenant.slug})

        context.membership.delete()
        logger.info(
            f"User {user.id} left tenant {context.tenant.slug}",
            extra={'tenant_id': str(context.tenant.id), 'user_id': str(user.id)}
        )

    @classmethod
    def get_user_tenants(cls, user: User):
        """
        Tenants the user belongs to, each annotated with the user's role.

        Master admins see every tenant; tenants they hold no membership in
        carry role None.
        """
        memberships = {
            m.tenant_id: m.role
            for m in TenantMember.objects.for_user(user)
        }
        if user.is_master_admin:
            tenants = list(Tenant.objects.order_by('name'))
        else:
            tenants = list(Tenant.objects.filter(id__in=memberships.keys()).order_by('name'))

        for tenant in tenants:
            tenant.role = memberships.get(tenant.id)
        return tenants

    @classmethod
    def get_all_tenants(cls, actor: User):
        """Every tenant with its member count. Master admins only."""
        AccessService.authorize_system(actor, Resource.ADMIN_TENANTS, Action.READ)
        return Tenant.objects.annotate(member_count=Count('members')).order_by('-created_at')

    @classmethod
    def get_members(cls, context: AccessContext):
        """Memberships of the context's tenant, with their users."""
        PolicyService.throw_if_not_allowed(context, Resource.TENANT_MEMBER, Action.READ)
        return TenantMember.objects.for_tenant(context.tenant).select_related('user').order_by('created_at')
