"""
Tests for JWT bearer authentication and the IsActiveUser permission.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

import jwt
import pytest
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.test import APIRequestFactory

from apps.core.authentication import JWTAuthentication
from apps.core.permissions import IsActiveUser
from apps.rbac.services import AuthService


@pytest.fixture
def factory():
    return APIRequestFactory()


def _request(factory, header=None):
    extra = {'HTTP_AUTHORIZATION': header} if header is not None else {}
    return factory.get('/v1/tenants', **extra)


@pytest.mark.django_db
class TestJWTAuthentication:
    """Test bearer token handling."""

    def test_valid_token_authenticates(self, factory, user):
        token = AuthService.generate_jwt(user)

        authenticated, credentials = JWTAuthentication().authenticate(_request(factory, f'Bearer {token}'))

        assert authenticated == user
        assert credentials == token

    def test_missing_header_is_anonymous(self, factory):
        assert JWTAuthentication().authenticate(_request(factory)) is None

    def test_other_scheme_is_ignored(self, factory):
        assert JWTAuthentication().authenticate(_request(factory, 'Basic dXNlcjpwYXNz')) is None

    @pytest.mark.parametrize('header', ['Bearer', 'Bearer one two', 'Bearer not-a-jwt'])
    def test_malformed_header_fails(self, factory, header):
        with pytest.raises(AuthenticationFailed):
            JWTAuthentication().authenticate(_request(factory, header))

    def test_expired_token_fails(self, factory, user):
        past = datetime.now(dt_timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'user_id': str(user.id), 'exp': past, 'iat': past - timedelta(hours=1)},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        with pytest.raises(AuthenticationFailed):
            JWTAuthentication().authenticate(_request(factory, f'Bearer {token}'))

    def test_token_signed_with_other_key_fails(self, factory, user):
        token = jwt.encode({'user_id': str(user.id)}, 'x' * 40 + 'some-other-key', algorithm='HS256')

        with pytest.raises(AuthenticationFailed):
            JWTAuthentication().authenticate(_request(factory, f'Bearer {token}'))

    def test_inactive_user_token_fails(self, factory, user):
        token = AuthService.generate_jwt(user)
        user.is_active = False
        user.save()

        with pytest.raises(AuthenticationFailed):
            JWTAuthentication().authenticate(_request(factory, f'Bearer {token}'))

    def test_failure_is_security_logged(self, factory, caplog):
        with caplog.at_level('WARNING', logger='security'):
            with pytest.raises(AuthenticationFailed):
                JWTAuthentication().authenticate(_request(factory, 'Bearer garbage'))

        assert any(getattr(r, 'event_type', None) == 'authentication_failed' for r in caplog.records)

    def test_authenticate_header(self, factory):
        assert JWTAuthentication().authenticate_header(_request(factory)) == 'Bearer'


@pytest.mark.django_db
class TestIsActiveUser:

    def test_active_user_allowed(self, factory, user):
        request = _request(factory)
        request.user = user

        assert IsActiveUser().has_permission(request, None) is True

    def test_anonymous_denied(self, factory):
        request = _request(factory)
        request.user = AnonymousUser()

        assert IsActiveUser().has_permission(request, None) is False

    def test_inactive_user_denied(self, factory, user):
        user.is_active = False
        request = _request(factory)
        request.user = user

        assert IsActiveUser().has_permission(request, None) is False


@pytest.mark.django_db
class TestAuthenticatedEndpoint:

    def test_missing_token_is_401(self, api_client):
        response = api_client.get('/v1/tenants')

        assert response.status_code == 401
        assert response['WWW-Authenticate'] == 'Bearer'

    def test_bad_token_is_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer nonsense')

        response = api_client.get('/v1/tenants')

        assert response.status_code == 401
        assert response.json()['request_id']
