"""
Tests for PolicyService: deny-by-default evaluation and the master-admin bypass.
"""
from unittest.mock import patch

import pytest
from hypothesis import given, strategies as st

from apps.core.exceptions import AuthorizationError
from apps.rbac.models import User
from apps.rbac.roles import Action, Resource, Role, TENANT_ROLES, permissions_for
from apps.rbac.services import AccessContext, PolicyService
from apps.tenants.models import Tenant


def context(role, is_master_admin=False):
    return AccessContext(
        role=role,
        tenant=Tenant(name='Acme', slug='acme'),
        user=User(email='someone@example.com'),
        is_master_admin=is_master_admin,
    )


class TestIsAllowed:
    """Property tests over the whole resource/action space."""

    @given(role=st.sampled_from(TENANT_ROLES), resource=st.sampled_from(list(Resource)),
           action=st.sampled_from(list(Action)))
    def test_matches_table_and_denies_otherwise(self, role, resource, action):
        expected = any(
            p.resource == resource and p.allows(action)
            for p in permissions_for(role)
        )

        assert PolicyService.is_allowed(context(role), resource, action) is expected

    @given(resource=st.sampled_from(list(Resource)), action=st.sampled_from(list(Action)))
    def test_master_admin_is_allowed_everything(self, resource, action):
        assert PolicyService.is_allowed(context(Role.MASTER_ADMIN, is_master_admin=True), resource, action)

    @given(resource=st.sampled_from(list(Resource)), action=st.sampled_from(list(Action)))
    def test_master_admin_user_is_allowed_everything(self, resource, action):
        actor = User(email='root@example.com', is_master_admin=True)

        assert PolicyService.is_allowed(actor, resource, action)

    @given(resource=st.sampled_from(list(Resource)), action=st.sampled_from(list(Action)))
    def test_no_role_is_denied_everything(self, resource, action):
        assert not PolicyService.is_allowed(context(None), resource, action)

    def test_string_values_are_accepted(self):
        assert PolicyService.is_allowed(context(Role.MEMBER), 'tenant', 'read')

    @pytest.mark.parametrize('resource, action', [
        ('billing', 'read'),
        ('tenant', 'approve'),
        ('', ''),
    ])
    def test_unknown_resource_or_action_denied(self, resource, action):
        assert not PolicyService.is_allowed(context(Role.OWNER), resource, action)
        assert not PolicyService.is_allowed(context(Role.MASTER_ADMIN, is_master_admin=True), resource, action)

    def test_no_actor_denied(self):
        assert not PolicyService.is_allowed(None, Resource.TENANT, Action.READ)

    def test_regular_user_denied_system_resources(self):
        actor = User(email='alice@example.com')

        assert not PolicyService.is_allowed(actor, Resource.ADMIN_USERS, Action.READ)

    def test_owner_cannot_delete_tenant(self):
        assert not PolicyService.is_allowed(context(Role.OWNER), Resource.TENANT, Action.DELETE)


class TestThrowIfNotAllowed:

    def test_allowed_returns_quietly(self):
        PolicyService.throw_if_not_allowed(context(Role.MEMBER), Resource.TENANT, Action.READ)

    @patch('apps.rbac.services.SecurityLogger.log_permission_denied')
    def test_denied_raises_and_logs(self, mock_log):
        ctx = context(Role.MEMBER)

        with pytest.raises(AuthorizationError) as exc_info:
            PolicyService.throw_if_not_allowed(ctx, Resource.TENANT, Action.DELETE)

        assert exc_info.value.details == {'resource': 'tenant', 'action': 'delete'}
        assert 'delete' in exc_info.value.message
        mock_log.assert_called_once()
        assert mock_log.call_args.kwargs['role'] == 'MEMBER'
        assert mock_log.call_args.kwargs['user_id'] == ctx.user.id
