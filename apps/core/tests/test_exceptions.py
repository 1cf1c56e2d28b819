"""
Tests for the error taxonomy and the DRF exception handler.
"""
import pytest
from django.db import DatabaseError
from django.test import RequestFactory
from django_ratelimit.exceptions import Ratelimited
from rest_framework.exceptions import NotAuthenticated

from apps.core.exceptions import (
    AuthenticationError, AuthorizationError, InfrastructureError,
    NotFoundError, ValidationError, custom_exception_handler, ratelimit_view,
)


@pytest.fixture
def request_with_id():
    request = RequestFactory().get('/v1/tenants/acme')
    request.request_id = 'req-abc'
    return request


def handle(exc, request):
    return custom_exception_handler(exc, {'request': request, 'view': None})


class TestPlatformExceptions:
    """Each error kind renders with its own status and code."""

    @pytest.mark.parametrize('exc_class, status_code, code', [
        (AuthenticationError, 401, 'UNAUTHORIZED'),
        (AuthorizationError, 403, 'FORBIDDEN'),
        (ValidationError, 400, 'VALIDATION_ERROR'),
        (NotFoundError, 404, 'NOT_FOUND'),
    ])
    def test_status_and_body(self, request_with_id, exc_class, status_code, code):
        response = handle(exc_class('went wrong', details={'tenant': 'acme'}), request_with_id)

        assert response.status_code == status_code
        assert response.data == {
            'error': 'went wrong',
            'code': code,
            'details': {'tenant': 'acme'},
            'request_id': 'req-abc',
        }

    def test_details_default_to_empty(self, request_with_id):
        response = handle(NotFoundError('Tenant not found'), request_with_id)

        assert response.data['details'] == {}

    def test_infrastructure_error_hides_store_detail(self, request_with_id):
        response = handle(
            InfrastructureError('could not connect to server at 10.0.0.5'),
            request_with_id
        )

        assert response.status_code == 503
        assert response.data['code'] == 'INFRASTRUCTURE_ERROR'
        assert response.data['error'] == InfrastructureError.public_message
        assert response.data['details'] == {}
        assert '10.0.0.5' not in str(response.data)

    def test_raw_database_error_is_infrastructure_error(self, request_with_id):
        response = handle(DatabaseError('deadlock detected'), request_with_id)

        assert response.status_code == 503
        assert response.data['code'] == 'INFRASTRUCTURE_ERROR'
        assert 'deadlock' not in str(response.data)


class TestFallbacks:

    def test_drf_exception_gets_request_id(self, request_with_id):
        response = handle(NotAuthenticated(), request_with_id)

        assert response.status_code == 401
        assert response.data['request_id'] == 'req-abc'

    def test_unhandled_exception_is_internal_error(self, request_with_id):
        response = handle(RuntimeError('kaboom'), request_with_id)

        assert response.status_code == 500
        assert response.data == {
            'error': 'Internal server error',
            'code': 'INTERNAL_ERROR',
            'request_id': 'req-abc',
        }

    def test_ratelimited_returns_429(self, request_with_id):
        response = handle(Ratelimited(), request_with_id)

        assert response.status_code == 429
        assert response['Retry-After'] == '60'
        assert response.data['code'] == 'RATE_LIMIT_EXCEEDED'

    def test_ratelimit_view(self, request_with_id):
        response = ratelimit_view(request_with_id, Ratelimited())

        assert response.status_code == 429
        assert response['Retry-After'] == '60'
        assert b'RATE_LIMIT_EXCEEDED' in response.content
