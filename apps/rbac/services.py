"""
Authorization and administration services.

Implements:
- PolicyService: role-permission evaluation with the master-admin bypass
- AccessService: tenant membership resolution and the access gate
- PrivilegedMutationGuard: invariant checks for privileged mutations
- AuditService: append-only audit trail writes and queries
- MasterAdminService: grant, revoke and bootstrap of master administrators
- AuthService: JWT issue and validation
"""
import logging
import math
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional

import jwt
from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count, Q
from django.db.transaction import TransactionManagementError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from apps.core.exceptions import (
    AuthenticationError, AuthorizationError, InfrastructureError,
    NotFoundError, ValidationError,
)
from apps.core.logging import SecurityLogger
from apps.rbac.models import AuditAction, AuditLogEntry, TargetType, User
from apps.rbac.roles import Action, Resource, Role, TENANT_ROLES, permissions_for
from apps.tenants.models import Tenant, TenantMember

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class AccessContext:
    """
    Resolved (user, tenant, role) triple for one request.

    Produced by AccessService.resolve_access and passed explicitly to the
    code that needs it.
    """
    role: Role
    tenant: Tenant
    user: User
    is_master_admin: bool
    membership: Optional[TenantMember] = None


@contextmanager
def privileged_transaction():
    """
    Run a privileged mutation and its audit write in one transaction.

    Store failures surface as InfrastructureError after the rollback.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as e:
        logger.error(
            "Privileged mutation rolled back after store failure",
            extra={'error': str(e)},
            exc_info=True
        )
        raise InfrastructureError('store failure during privileged mutation') from e


def _value(member):
    return str(getattr(member, 'value', member))


def _require_authenticated(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        raise AuthenticationError('Authentication required')
    if not getattr(user, 'is_active', True):
        raise AuthenticationError('Account is inactive')


class PolicyService:
    """
    Decides whether an actor may perform an action on a resource.

    The master-admin bypass lives here and nowhere else.
    """

    @classmethod
    def is_allowed(cls, actor, resource, action) -> bool:
        """
        Check a permission without raising.

        Args:
            actor: AccessContext, or a User for system-scope checks
            resource: Resource (or its string value)
            action: Action (or its string value)

        Returns:
            bool: True if allowed. Unknown resources, actions and roles deny.
        """
        if actor is None:
            return False

        try:
            resource = Resource(resource)
            action = Action(action)
        except ValueError:
            return False

        if getattr(actor, 'is_master_admin', False):
            return True

        return any(
            permission.resource == resource and permission.allows(action)
            for permission in permissions_for(getattr(actor, 'role', None))
        )

    @classmethod
    def throw_if_not_allowed(cls, actor, resource, action):
        """
        Raise AuthorizationError when is_allowed is False.
        """
        if cls.is_allowed(actor, resource, action):
            return

        user = getattr(actor, 'user', actor)
        tenant = getattr(actor, 'tenant', None)
        role = getattr(actor, 'role', None)

        SecurityLogger.log_permission_denied(
            user_id=getattr(user, 'id', None),
            resource=_value(resource),
            action=_value(action),
            role=_value(role) if role else None,
            tenant_id=getattr(tenant, 'id', None)
        )

        raise AuthorizationError(
            f"You are not allowed to perform {_value(action)} on {_value(resource)}",
            details={'resource': _value(resource), 'action': _value(action)}
        )


class AccessService:
    """
    Resolves a user's standing in a tenant and gates access to it.
    """

    @classmethod
    def get_tenant(cls, tenant_key) -> Tenant:
        """
        Look up a tenant by UUID or slug.

        A key that parses as a UUID matches on id first and only then on slug.

        Raises:
            NotFoundError: no tenant matches the key
        """
        if isinstance(tenant_key, Tenant):
            return tenant_key

        key = str(tenant_key or '').strip()
        tenant = None
        if key:
            try:
                tenant = Tenant.objects.filter(id=uuid.UUID(key)).first()
            except ValueError:
                pass
            if tenant is None:
                tenant = Tenant.objects.filter(slug=key).first()

        if tenant is None:
            raise NotFoundError('Tenant not found', details={'tenant': key})
        return tenant

    @classmethod
    def resolve_access(cls, user, tenant_key) -> AccessContext:
        """
        Resolve the caller's role in a tenant.

        Master admins resolve to MASTER_ADMIN whether or not they hold a
        membership row. Everyone else needs a TenantMember row.

        Raises:
            AuthenticationError: no authenticated, active user
            NotFoundError: tenant_key does not resolve
            AuthorizationError: user is not a member of the tenant
        """
        _require_authenticated(user)
        tenant = cls.get_tenant(tenant_key)

        membership = TenantMember.objects.filter(tenant=tenant, user=user).first()

        if user.is_master_admin:
            return AccessContext(
                role=Role.MASTER_ADMIN,
                tenant=tenant,
                user=user,
                is_master_admin=True,
                membership=membership,
            )

        if membership is None or membership.role not in TENANT_ROLES:
            logger.warning(
                f"User {user.id} has no access to tenant {tenant.slug}",
                extra={'user_id': str(user.id), 'tenant_id': str(tenant.id)}
            )
            raise AuthorizationError('no access to tenant', details={'tenant': tenant.slug})

        return AccessContext(
            role=Role(membership.role),
            tenant=tenant,
            user=user,
            is_master_admin=False,
            membership=membership,
        )

    @classmethod
    def authorize(cls, user, tenant_key, resource, action) -> AccessContext:
        """Resolve the caller's access to a tenant and check one permission."""
        context = cls.resolve_access(user, tenant_key)
        PolicyService.throw_if_not_allowed(context, resource, action)
        return context

    @classmethod
    def authorize_system(cls, user, resource, action) -> User:
        """System-scope check for admin_* resources, where no tenant is involved."""
        _require_authenticated(user)
        PolicyService.throw_if_not_allowed(user, resource, action)
        return user


class PrivilegedMutationGuard:
    """
    Checks run before any privileged mutation writes.

    Each check raises on failure and has no side effects beyond logging and,
    for the last-admin check, row locks held until the transaction ends.
    """

    @classmethod
    def require_master_admin(cls, actor, operation: str):
        _require_authenticated(actor)
        if not actor.is_master_admin:
            SecurityLogger.log_privilege_escalation_attempt(
                user_id=actor.id,
                operation=operation,
                user_email=actor.email
            )
            raise AuthorizationError(
                'Master administrator privileges required',
                details={'operation': operation}
            )

    @classmethod
    def check_not_self(cls, actor, target):
        if actor.id == target.id:
            SecurityLogger.log_self_admin_modification(user_id=actor.id, user_email=actor.email)
            raise ValidationError('cannot modify own admin status')

    @classmethod
    def check_not_last_master_admin(cls, target):
        """
        Lock the master-admin rows and refuse to remove the last one.

        Must run inside the mutation's transaction so that the count and the
        flag write commit together. Rows are locked in primary-key order.

        Returns:
            list: IDs of the master admins as read under the lock
        """
        if not transaction.get_connection().in_atomic_block:
            raise TransactionManagementError(
                'check_not_last_master_admin must run inside a transaction'
            )

        master_admin_ids = list(
            User.objects.select_for_update()
            .filter(is_master_admin=True)
            .order_by('id')
            .values_list('id', flat=True)
        )

        if target.id in master_admin_ids and len(master_admin_ids) <= 1:
            SecurityLogger.log_last_master_admin_protection(actor_id=None, target_id=target.id)
            raise ValidationError('cannot remove the last master administrator')

        return master_admin_ids


class AuditService:
    """
    Writes and reads the append-only audit trail.
    """

    @classmethod
    def record(cls, actor_id, action, target_type, target_id, details=None) -> AuditLogEntry:
        """
        Append one audit entry.

        Call inside the mutation's transaction: a failure here raises and
        the enclosing transaction rolls the mutation back.

        Raises:
            ValidationError: action or target_type outside the closed sets
            InfrastructureError: the insert failed
        """
        if action not in AuditAction.values:
            raise ValidationError('Unknown audit action', details={'action': _value(action)})
        if target_type not in TargetType.values:
            raise ValidationError('Unknown audit target type', details={'target_type': _value(target_type)})

        try:
            entry = AuditLogEntry.objects.create(
                user_id=actor_id,
                action=_value(action),
                target_type=_value(target_type),
                target_id=str(target_id),
                details=details or {},
            )
        except DatabaseError as e:
            logger.error(
                f"Failed to write audit entry {_value(action)}",
                extra={'target_id': str(target_id)},
                exc_info=True
            )
            raise InfrastructureError('failed to write audit log entry') from e

        logger.info(
            f"Audit entry recorded: {entry.action} on {entry.target_type}:{entry.target_id}",
            extra={'actor_id': str(actor_id), 'audit_entry_id': str(entry.id)}
        )
        return entry

    @classmethod
    def list_audit_log(cls, actor, filters: Optional[Dict[str, Any]] = None,
                       page=1, limit=DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        """
        Page through audit entries, newest first. Master admins only.

        Args:
            actor: requesting User
            filters: any of action, user_id, target_type, target_id, from, to
            page: 1-based page number
            limit: page size, 1 to 100

        Returns:
            dict: {'data': [AuditLogEntry], 'pagination': {total, page, limit, pages}}
        """
        AccessService.authorize_system(actor, Resource.ADMIN_AUDIT_LOGS, Action.READ)

        page = cls._parse_int('page', page, 1, minimum=1)
        limit = cls._parse_int('limit', limit, DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE)

        queryset = cls._apply_filters(AuditLogEntry.objects.select_related('user'), filters or {})
        total = queryset.count()
        offset = (page - 1) * limit

        return {
            'data': list(queryset.order_by('-created_at')[offset:offset + limit]),
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': math.ceil(total / limit),
            },
        }

    @staticmethod
    def _parse_int(name, value, default, minimum=None, maximum=None):
        if value in (None, ''):
            return default
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{name} must be an integer', details={name: value})
        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            raise ValidationError(
                f'{name} must be between {minimum} and {maximum}' if maximum else f'{name} must be at least {minimum}',
                details={name: value}
            )
        return value

    @staticmethod
    def _parse_moment(name, value):
        if isinstance(value, datetime):
            moment = value
        else:
            moment = parse_datetime(str(value))
            if moment is None:
                day = parse_date(str(value))
                if day is None:
                    raise ValidationError(f'{name} must be an ISO 8601 date or datetime', details={name: value})
                moment = datetime(day.year, day.month, day.day)
        if timezone.is_naive(moment):
            moment = timezone.make_aware(moment, dt_timezone.utc)
        return moment

    @classmethod
    def _apply_filters(cls, queryset, filters):
        action = filters.get('action')
        if action:
            if action not in AuditAction.values:
                raise ValidationError('Unknown audit action', details={'action': action})
            queryset = queryset.filter(action=action)

        user_id = filters.get('user_id')
        if user_id:
            try:
                queryset = queryset.filter(user_id=uuid.UUID(str(user_id)))
            except ValueError:
                raise ValidationError('user_id must be a UUID', details={'user_id': user_id})

        target_type = filters.get('target_type')
        if target_type:
            if target_type not in TargetType.values:
                raise ValidationError('Unknown target type', details={'target_type': target_type})
            queryset = queryset.filter(target_type=target_type)

        target_id = filters.get('target_id')
        if target_id:
            queryset = queryset.filter(target_id=str(target_id))

        if filters.get('from'):
            queryset = queryset.filter(created_at__gte=cls._parse_moment('from', filters['from']))
        if filters.get('to'):
            queryset = queryset.filter(created_at__lte=cls._parse_moment('to', filters['to']))

        return queryset


class MasterAdminService:
    """
    Grants and revokes the global master-admin flag, and deletes users.

    Every mutation runs the guard checks before writing and records exactly
    one audit entry in the same transaction.
    """

    @classmethod
    def get_user(cls, user_key, for_update=False) -> User:
        """Look up a user by UUID or email."""
        if isinstance(user_key, User):
            user_key = user_key.id

        key = str(user_key or '').strip()
        queryset = User.objects.select_for_update() if for_update else User.objects.all()

        try:
            lookup = Q(id=uuid.UUID(key))
        except ValueError:
            lookup = Q(email__iexact=key)

        user = queryset.filter(lookup).first() if key else None
        if user is None:
            raise NotFoundError('User not found', details={'user': key})
        return user

    @staticmethod
    def _flag_details(user, granted, **extra):
        details = {
            'granted': granted,
            'user_email': user.email,
            'user_name': user.name,
            'timestamp': timezone.now().isoformat(),
        }
        details.update(extra)
        return details

    @classmethod
    def grant(cls, actor, target_key) -> User:
        """
        Designate a user as master admin.

        Raises:
            AuthorizationError: actor is not a master admin
            NotFoundError: target does not exist
            ValidationError: target is the actor, or already a master admin
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'grant_master_admin')

        with privileged_transaction():
            target = cls.get_user(target_key, for_update=True)
            PrivilegedMutationGuard.check_not_self(actor, target)
            if target.is_master_admin:
                raise ValidationError('User is already a master administrator')

            target.is_master_admin = True
            target.save(update_fields=['is_master_admin', 'updated_at'])

            AuditService.record(
                actor.id,
                AuditAction.GRANT_MASTER_ADMIN,
                TargetType.USER,
                target.id,
                cls._flag_details(target, True)
            )

        logger.info(
            f"Master admin granted to {target.id} by {actor.id}",
            extra={'actor_id': str(actor.id), 'target_id': str(target.id)}
        )
        return target

    @classmethod
    def revoke(cls, actor, target_key) -> User:
        """
        Remove the master-admin flag from a user.

        Raises:
            AuthorizationError: actor is not a master admin
            NotFoundError: target does not exist
            ValidationError: target is the actor, is not a master admin, or is the last one
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'revoke_master_admin')

        with privileged_transaction():
            target = cls.get_user(target_key)
            PrivilegedMutationGuard.check_not_self(actor, target)

            master_admin_ids = PrivilegedMutationGuard.check_not_last_master_admin(target)
            if target.id not in master_admin_ids:
                raise ValidationError('User is not a master administrator')

            target.is_master_admin = False
            target.save(update_fields=['is_master_admin', 'updated_at'])

            AuditService.record(
                actor.id,
                AuditAction.REVOKE_MASTER_ADMIN,
                TargetType.USER,
                target.id,
                cls._flag_details(target, False)
            )

        logger.info(
            f"Master admin revoked from {target.id} by {actor.id}",
            extra={'actor_id': str(actor.id), 'target_id': str(target.id)}
        )
        return target

    @classmethod
    def delete_user(cls, actor, target_key):
        """
        Delete a user and their memberships.

        Deleting a master admin is a revocation too: the same guard checks
        apply and a REVOKE_MASTER_ADMIN entry is recorded.
        """
        PrivilegedMutationGuard.require_master_admin(actor, 'delete_user')

        with privileged_transaction():
            target = cls.get_user(target_key)
            master_admin_ids = PrivilegedMutationGuard.check_not_last_master_admin(target)

            if target.id in master_admin_ids:
                PrivilegedMutationGuard.check_not_self(actor, target)
                AuditService.record(
                    actor.id,
                    AuditAction.REVOKE_MASTER_ADMIN,
                    TargetType.USER,
                    target.id,
                    cls._flag_details(target, False, user_deleted=True)
                )

            target_id = target.id
            target.delete()

        logger.info(
            f"User {target_id} deleted by {actor.id}",
            extra={'actor_id': str(actor.id), 'target_id': str(target_id)}
        )

    @classmethod
    def bootstrap(cls, user) -> User:
        """
        Designate the first master admin of a fresh installation.

        Refused once any master admin exists; after that, only grant() applies.
        """
        with privileged_transaction():
            existing = list(
                User.objects.select_for_update()
                .filter(is_master_admin=True)
                .values_list('id', flat=True)
            )
            if existing:
                raise ValidationError('A master administrator already exists; use grant instead')

            user = cls.get_user(user, for_update=True)
            user.is_master_admin = True
            user.save(update_fields=['is_master_admin', 'updated_at'])

            AuditService.record(
                user.id,
                AuditAction.GRANT_MASTER_ADMIN,
                TargetType.USER,
                user.id,
                cls._flag_details(user, True, bootstrap=True)
            )

        logger.info(f"Bootstrapped first master admin {user.id}", extra={'target_id': str(user.id)})
        return user

    @classmethod
    def list_master_admins(cls, actor):
        AccessService.authorize_system(actor, Resource.ADMIN_USERS, Action.READ)
        return User.objects.master_admins().order_by('created_at')

    @classmethod
    def get_master_admin(cls, actor, user_key) -> User:
        AccessService.authorize_system(actor, Resource.ADMIN_USERS, Action.READ)
        user = cls.get_user(user_key)
        if not user.is_master_admin:
            raise NotFoundError('Master administrator not found', details={'user': str(user_key)})
        return user

    @classmethod
    def list_users(cls, actor):
        """All users, newest first, annotated with membership_count."""
        AccessService.authorize_system(actor, Resource.ADMIN_USERS, Action.READ)
        return User.objects.annotate(
            membership_count=Count('tenant_memberships')
        ).order_by('-created_at')


class AuthService:
    """
    Service for JWT issue and validation.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """
        Extract and return an active user from a JWT token.

        Returns:
            User instance or None if invalid
        """
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        try:
            user_id = uuid.UUID(str(payload.get('user_id')))
        except ValueError:
            return None

        return User.objects.filter(id=user_id, is_active=True).first()
