"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed

from apps.core.logging import SecurityLogger


class JWTAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying `Authorization: Bearer <jwt>`.

    The token is issued by the identity provider and carries a user_id
    claim. Requests without the header fall through as anonymous so that
    the view's permission classes decide the response.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        from apps.rbac.services import AuthService

        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            self._fail(request, 'malformed authorization header')

        try:
            token = auth[1].decode()
        except UnicodeError:
            self._fail(request, 'token is not valid UTF-8')

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            self._fail(request, 'invalid, expired or unknown token')

        return (user, token)

    def authenticate_header(self, request):
        return self.keyword

    def _fail(self, request, reason):
        SecurityLogger.log_authentication_failed(
            reason=reason,
            ip_address=request.META.get('REMOTE_ADDR'),
            path=request.path,
        )
        raise AuthenticationFailed('Invalid or expired token')
