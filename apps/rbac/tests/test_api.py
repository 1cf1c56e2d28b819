"""
Tests for the master-admin REST API endpoints.

Tests:
- User listing and deletion
- Master administrator listing, grant and revoke
- Audit log viewing
"""
import pytest
from rest_framework import status

from apps.rbac.models import AuditAction, AuditLogEntry, User
from apps.rbac.roles import Role


@pytest.mark.django_db
class TestAdminUsersAPI:

    def test_list_users(self, auth_client, master_admin, user, tenant, make_member):
        make_member(tenant, user, Role.MEMBER)

        response = auth_client(master_admin).get('/v1/admin/users')

        assert response.status_code == status.HTTP_200_OK
        by_email = {u['email']: u for u in response.json()['data']}
        assert by_email['alice@example.com']['membership_count'] == 1
        assert by_email['root@example.com']['is_master_admin'] is True

    def test_list_users_forbidden_for_regular_user(self, auth_client, user):
        response = auth_client(user).get('/v1/admin/users')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        body = response.json()
        assert body['code'] == 'FORBIDDEN'
        assert body['request_id'] == response['X-Request-ID']

    def test_list_users_requires_token(self, api_client, master_admin):
        response = api_client.get('/v1/admin/users')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_delete_user(self, auth_client, master_admin, user):
        response = auth_client(master_admin).delete(f'/v1/admin/users/{user.id}')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not User.objects.filter(id=user.id).exists()

    def test_delete_unknown_user(self, auth_client, master_admin):
        response = auth_client(master_admin).delete('/v1/admin/users/ghost@example.com')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()['code'] == 'NOT_FOUND'


@pytest.mark.django_db
class TestMasterAdminsAPI:

    def test_list(self, auth_client, master_admin, second_master_admin, user):
        response = auth_client(master_admin).get('/v1/admin/master-admins')

        assert response.status_code == status.HTTP_200_OK
        emails = {u['email'] for u in response.json()['data']}
        assert emails == {'root@example.com', 'deputy@example.com'}

    def test_grant(self, auth_client, master_admin, user):
        response = auth_client(master_admin).post(
            '/v1/admin/master-admins', {'user': 'alice@example.com'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['is_master_admin'] is True
        assert AuditLogEntry.objects.filter(
            action=AuditAction.GRANT_MASTER_ADMIN, target_id=str(user.id)
        ).count() == 1

    def test_grant_requires_user(self, auth_client, master_admin):
        response = auth_client(master_admin).post('/v1/admin/master-admins', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_grant_by_regular_user_forbidden(self, auth_client, user, master_admin):
        other = User.objects.create_user(email='bob@example.com')

        response = auth_client(user).post('/v1/admin/master-admins', {'user': str(other.id)}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert AuditLogEntry.objects.count() == 0

    def test_get_master_admin(self, auth_client, master_admin, user):
        client = auth_client(master_admin)

        assert client.get(f'/v1/admin/master-admins/{master_admin.id}').status_code == status.HTTP_200_OK
        assert client.get(f'/v1/admin/master-admins/{user.id}').status_code == status.HTTP_404_NOT_FOUND

    def test_revoke(self, auth_client, master_admin, second_master_admin):
        response = auth_client(master_admin).delete(f'/v1/admin/master-admins/{second_master_admin.id}')

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['is_master_admin'] is False

    def test_revoke_self_rejected(self, auth_client, master_admin, second_master_admin):
        response = auth_client(master_admin).delete(f'/v1/admin/master-admins/{master_admin.id}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body['code'] == 'VALIDATION_ERROR'
        assert body['error'] == 'cannot modify own admin status'
        master_admin.refresh_from_db()
        assert master_admin.is_master_admin is True


@pytest.mark.django_db
class TestAuditLogAPI:

    def test_list_with_filter(self, auth_client, master_admin, user):
        client = auth_client(master_admin)
        client.post('/v1/admin/master-admins', {'user': str(user.id)}, format='json')
        client.post('/v1/admin/tenants', {'name': 'Globex'}, format='json')

        response = client.get('/v1/admin/audit-logs', {'action': 'GRANT_MASTER_ADMIN'})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body['pagination'] == {'total': 1, 'page': 1, 'limit': 20, 'pages': 1}
        entry = body['data'][0]
        assert entry['action'] == 'GRANT_MASTER_ADMIN'
        assert entry['target_type'] == 'USER'
        assert entry['target_id'] == str(user.id)
        assert entry['user_id'] == str(master_admin.id)
        assert entry['user_email'] == master_admin.email

    def test_pagination_params(self, auth_client, master_admin):
        client = auth_client(master_admin)
        for name in ('One', 'Two', 'Three'):
            client.post('/v1/admin/tenants', {'name': name}, format='json')

        body = client.get('/v1/admin/audit-logs', {'page': 2, 'limit': 2}).json()

        assert len(body['data']) == 1
        assert body['pagination']['pages'] == 2

    def test_invalid_filter(self, auth_client, master_admin):
        response = auth_client(master_admin).get('/v1/admin/audit-logs', {'target_type': 'WORKSPACE'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_forbidden_for_tenant_owner(self, auth_client, user, tenant, make_member):
        make_member(tenant, user, Role.OWNER)

        response = auth_client(user).get('/v1/admin/audit-logs')

        assert response.status_code == status.HTTP_403_FORBIDDEN
