"""
Role-permission table.

Static mapping from role to the resources and actions it may perform.
Built once at import and never mutated, so it is safe to share across
threads and requests.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple, Union

from django.db import models


class Role(models.TextChoices):
    """Tenant roles, plus the MASTER_ADMIN pseudo-role used by access contexts."""
    OWNER = 'OWNER', 'Owner'
    ADMIN = 'ADMIN', 'Admin'
    MEMBER = 'MEMBER', 'Member'
    MASTER_ADMIN = 'MASTER_ADMIN', 'Master admin'


# Roles a TenantMember row may hold
TENANT_ROLES = (Role.OWNER, Role.ADMIN, Role.MEMBER)
TENANT_ROLE_CHOICES = [(role.value, role.label) for role in TENANT_ROLES]


class Resource(models.TextChoices):
    TENANT = 'tenant', 'Tenant'
    TENANT_MEMBER = 'tenant_member', 'Tenant member'
    TENANT_INVITATION = 'tenant_invitation', 'Tenant invitation'
    TENANT_SSO = 'tenant_sso', 'Tenant SSO'
    TENANT_DSYNC = 'tenant_dsync', 'Tenant directory sync'
    TENANT_AUDIT_LOG = 'tenant_audit_log', 'Tenant audit log'
    TENANT_WEBHOOK = 'tenant_webhook', 'Tenant webhook'
    TENANT_PAYMENTS = 'tenant_payments', 'Tenant payments'
    TENANT_API_KEY = 'tenant_api_key', 'Tenant API key'
    ADMIN_USERS = 'admin_users', 'Admin: users'
    ADMIN_TENANTS = 'admin_tenants', 'Admin: tenants'
    ADMIN_AUDIT_LOGS = 'admin_audit_logs', 'Admin: audit logs'


class Action(models.TextChoices):
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    READ = 'read', 'Read'
    DELETE = 'delete', 'Delete'
    LEAVE = 'leave', 'Leave'


@dataclass(frozen=True)
class AllActions:
    """Grants every action on a resource."""

    def allows(self, action: Action) -> bool:
        return action in Action.values

    def serialize(self):
        return '*'


@dataclass(frozen=True)
class ActionSubset:
    """Grants only the listed actions on a resource."""

    actions: frozenset

    def allows(self, action: Action) -> bool:
        return getattr(action, 'value', action) in self.actions

    def serialize(self):
        return sorted(self.actions)


ActionGrant = Union[AllActions, ActionSubset]


@dataclass(frozen=True)
class Permission:
    resource: Resource
    actions: ActionGrant

    def allows(self, action: Action) -> bool:
        return self.actions.allows(action)


ALL = AllActions()


def _subset(*actions: Action) -> ActionSubset:
    return ActionSubset(frozenset(action.value for action in actions))


# Resources an OWNER fully controls; ADMIN gets the same minus payments
_OWNER_MANAGED = (
    Resource.TENANT_INVITATION,
    Resource.TENANT_SSO,
    Resource.TENANT_DSYNC,
    Resource.TENANT_AUDIT_LOG,
    Resource.TENANT_WEBHOOK,
    Resource.TENANT_PAYMENTS,
    Resource.TENANT_API_KEY,
)

_MEMBER_BASE = (
    Permission(Resource.TENANT, _subset(Action.READ, Action.LEAVE)),
    Permission(Resource.TENANT_MEMBER, _subset(Action.READ)),
)

ROLE_PERMISSIONS: Mapping[Role, Tuple[Permission, ...]] = MappingProxyType({
    Role.MASTER_ADMIN: tuple(Permission(resource, ALL) for resource in Resource),
    Role.OWNER: _MEMBER_BASE + tuple(Permission(resource, ALL) for resource in _OWNER_MANAGED),
    Role.ADMIN: _MEMBER_BASE + tuple(
        Permission(resource, ALL)
        for resource in _OWNER_MANAGED
        if resource != Resource.TENANT_PAYMENTS
    ),
    Role.MEMBER: _MEMBER_BASE,
})


def permissions_for(role) -> Tuple[Permission, ...]:
    """
    Return the permission entries granted to a role.

    Total over all inputs: an unknown role, or None, yields an empty tuple.
    """
    if role is None:
        return ()
    try:
        role = Role(role)
    except ValueError:
        return ()
    return ROLE_PERMISSIONS.get(role, ())


def serialize_permissions(role):
    """Render a role's entries as [{resource, actions: "*" | [...]}] for API responses."""
    return [
        {
            'resource': permission.resource.value,
            'actions': permission.actions.serialize(),
        }
        for permission in permissions_for(role)
    ]
