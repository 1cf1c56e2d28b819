"""
Master-admin API views.

Provides endpoints for:
- User listing and deletion
- Master administrator listing, grant and revoke
- Audit log queries
"""
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView
import logging

from apps.core.permissions import IsActiveUser
from apps.rbac.serializers import (
    AdminUserSerializer,
    AuditLogEntrySerializer,
    MasterAdminGrantSerializer,
    UserSerializer,
)
from apps.rbac.services import AuditService, MasterAdminService

logger = logging.getLogger(__name__)

MUTATION_RATE = '30/m'

ERROR_RESPONSE = {
    'type': 'object',
    'properties': {
        'error': {'type': 'string'},
        'code': {'type': 'string'},
        'details': {'type': 'object'},
        'request_id': {'type': 'string'},
    }
}

AUDIT_FILTERS = ('action', 'user_id', 'target_type', 'target_id', 'from', 'to')


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Users'],
        summary='List users',
        description='All users, newest first, with the number of tenants each belongs to. '
                    'Requires master administrator status.',
        responses={200: AdminUserSerializer(many=True), 403: ERROR_RESPONSE},
    )
)
class AdminUserListView(APIView):
    """
    GET /v1/admin/users
    """
    permission_classes = [IsActiveUser]

    def get(self, request):
        users = MasterAdminService.list_users(request.user)
        return Response({'data': AdminUserSerializer(users, many=True).data}, status=status.HTTP_200_OK)


@extend_schema_view(
    delete=extend_schema(
        tags=['Admin - Users'],
        summary='Delete user',
        description='Deletes the user and their memberships. Deleting a master administrator is '
                    'subject to the self and last-administrator checks and is audited as a revocation.',
        responses={204: None, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
)
class AdminUserDetailView(APIView):
    """
    DELETE /v1/admin/users/{user_id}
    """
    permission_classes = [IsActiveUser]

    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='DELETE', block=True))
    def delete(self, request, user_id):
        MasterAdminService.delete_user(request.user, user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Master admins'],
        summary='List master administrators',
        responses={200: UserSerializer(many=True), 403: ERROR_RESPONSE},
    ),
    post=extend_schema(
        tags=['Admin - Master admins'],
        summary='Grant master administrator status',
        description='Target by user ID or email. Records a GRANT_MASTER_ADMIN audit entry.',
        request=MasterAdminGrantSerializer,
        responses={200: UserSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    ),
)
class MasterAdminListView(APIView):
    """
    GET  /v1/admin/master-admins
    POST /v1/admin/master-admins
    """
    permission_classes = [IsActiveUser]

    def get(self, request):
        admins = MasterAdminService.list_master_admins(request.user)
        return Response({'data': UserSerializer(admins, many=True).data}, status=status.HTTP_200_OK)

    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='POST', block=True))
    def post(self, request):
        serializer = MasterAdminGrantSerializer(data=request.data)
        if not serializer.is_valid():
            raise DRFValidationError(serializer.errors)

        user = MasterAdminService.grant(request.user, serializer.validated_data['user'])
        return Response({'data': UserSerializer(user).data}, status=status.HTTP_200_OK)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Master admins'],
        summary='Get master administrator',
        responses={200: UserSerializer, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    ),
    delete=extend_schema(
        tags=['Admin - Master admins'],
        summary='Revoke master administrator status',
        description='Refused for the caller themself and for the last remaining master administrator. '
                    'Records a REVOKE_MASTER_ADMIN audit entry.',
        responses={200: UserSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    ),
)
class MasterAdminDetailView(APIView):
    """
    GET    /v1/admin/master-admins/{user_id}
    DELETE /v1/admin/master-admins/{user_id}
    """
    permission_classes = [IsActiveUser]

    def get(self, request, user_id):
        user = MasterAdminService.get_master_admin(request.user, user_id)
        return Response({'data': UserSerializer(user).data}, status=status.HTTP_200_OK)

    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='DELETE', block=True))
    def delete(self, request, user_id):
        user = MasterAdminService.revoke(request.user, user_id)
        return Response({'data': UserSerializer(user).data}, status=status.HTTP_200_OK)


@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Audit'],
        summary='List audit log entries',
        description='''
Privileged mutations, newest first. Requires master administrator status.

Query parameters:
- `action`: e.g. `GRANT_MASTER_ADMIN`, `CREATE_TENANT`
- `user_id`: actor who performed the mutation
- `target_type`: `TENANT`, `TENANT_MEMBER` or `USER`
- `target_id`: ID of the target entity
- `from` / `to`: created_at range (ISO 8601)
- `page` (default 1) and `limit` (default 20, max 100)
        ''',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR, description='Filter by action'),
            OpenApiParameter('user_id', OpenApiTypes.UUID, description='Filter by actor'),
            OpenApiParameter('target_type', OpenApiTypes.STR, description='Filter by target type'),
            OpenApiParameter('target_id', OpenApiTypes.STR, description='Filter by target ID'),
            OpenApiParameter('from', OpenApiTypes.DATETIME, description='Created at or after'),
            OpenApiParameter('to', OpenApiTypes.DATETIME, description='Created at or before'),
            OpenApiParameter('page', OpenApiTypes.INT, description='Page number'),
            OpenApiParameter('limit', OpenApiTypes.INT, description='Entries per page (max 100)'),
        ],
        responses={200: AuditLogEntrySerializer(many=True), 400: ERROR_RESPONSE, 403: ERROR_RESPONSE},
    )
)
class AuditLogListView(APIView):
    """
    GET /v1/admin/audit-logs
    """
    permission_classes = [IsActiveUser]

    def get(self, request):
        params = request.query_params
        filters = {key: params.get(key) for key in AUDIT_FILTERS if params.get(key)}

        result = AuditService.list_audit_log(
            request.user,
            filters=filters,
            page=params.get('page'),
            limit=params.get('limit'),
        )

        return Response({
            'data': AuditLogEntrySerializer(result['data'], many=True).data,
            'pagination': result['pagination'],
        }, status=status.HTTP_200_OK)
