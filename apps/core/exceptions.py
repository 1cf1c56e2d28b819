"""
Error taxonomy and the DRF exception handler.

Every failure raised by the authorization core is a PlatformException
subclass carrying an HTTP-equivalent status code and a stable error code.
The handler renders them as {error, code, details, request_id}.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django_ratelimit.exceptions import Ratelimited
from django.db import DatabaseError
from django.http import JsonResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_RETRY_AFTER = 60


class PlatformException(Exception):
    """Base exception for tenant administration errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(PlatformException):
    """Raised when no valid identity is presented."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'UNAUTHORIZED'


class AuthorizationError(PlatformException):
    """Raised when the identity lacks a permission or tenant membership."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'


class ValidationError(PlatformException):
    """Raised on invariant violations and malformed input."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'VALIDATION_ERROR'


class NotFoundError(PlatformException):
    """Raised when a tenant, user or member key does not resolve."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class InfrastructureError(PlatformException):
    """
    Raised when the store or a transaction fails.

    Safe to retry for idempotent reads only. A mutation that failed with
    this error must be confirmed against current state or the audit log
    before it is attempted again.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'INFRASTRUCTURE_ERROR'
    public_message = 'The service is temporarily unavailable'


def _client_ip(request):
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def _rate_limit_body(request_id=None):
    return {
        'error': 'Rate limit exceeded. Please try again later.',
        'code': 'RATE_LIMIT_EXCEEDED',
        'request_id': request_id,
        'retry_after': RATE_LIMIT_RETRY_AFTER,
    }


def ratelimit_view(request, exception):
    """
    Custom view for django-ratelimit to return 429 instead of 403.

    Used for non-DRF views; DRF views go through custom_exception_handler.
    """
    from apps.core.logging import SecurityLogger

    request_id = getattr(request, 'request_id', None)
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=_client_ip(request),
        user_email=getattr(getattr(request, 'user', None), 'email', None),
    )

    response = JsonResponse(_rate_limit_body(request_id), status=429)
    response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
    return response


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        from apps.core.logging import SecurityLogger

        SecurityLogger.log_rate_limit_exceeded(
            endpoint=request.path if request else 'unknown',
            ip_address=_client_ip(request) if request else 'unknown',
            user_email=getattr(getattr(request, 'user', None), 'email', None),
        )
        response = Response(
            _rate_limit_body(request_id),
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
        return response

    if isinstance(exc, DatabaseError):
        exc = InfrastructureError(str(exc))

    if isinstance(exc, PlatformException):
        if isinstance(exc, InfrastructureError):
            logger.error(
                f"Infrastructure failure: {exc.message}",
                extra={
                    'request_id': request_id,
                    'path': request.path if request else None,
                    'method': request.method if request else None,
                },
                exc_info=exc
            )
            # Store-level detail never leaves the process
            body = {
                'error': InfrastructureError.public_message,
                'code': exc.code,
                'details': {},
            }
        else:
            logger.info(
                f"{exc.__class__.__name__}: {exc.message}",
                extra={
                    'request_id': request_id,
                    'path': request.path if request else None,
                    'method': request.method if request else None,
                    'status_code': exc.status_code,
                }
            )
            body = {
                'error': exc.message,
                'code': exc.code,
                'details': exc.details,
            }
        body['request_id'] = request_id
        return Response(body, status=exc.status_code)

    # Call DRF's default exception handler
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'code': 'INTERNAL_ERROR',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
