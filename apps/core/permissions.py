"""
DRF permission classes.

Views only establish that a caller is authenticated here. Role and tenant
decisions are made by AccessService inside the view body, where the tenant
key is known.
"""
import logging
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


class IsActiveUser(BasePermission):
    """
    Allow requests from authenticated, active users.

    Anonymous requests get a 401 through the authenticator's
    `authenticate_header`; inactive users get a 403.
    """

    message = 'Authentication credentials were not provided or the account is inactive.'

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)

        if not user or not user.is_authenticated:
            return False

        if not user.is_active:
            logger.warning(
                f"Inactive user {user.id} rejected",
                extra={
                    'user_id': str(user.id),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True
