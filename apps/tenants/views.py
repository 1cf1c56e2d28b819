"""
Tenant-scoped API views.

Endpoints a tenant member calls about their own tenants:
- List my tenants
- Tenant detail, members and my permissions
- Leave a tenant

The tenant comes from the URL key (slug or UUID) and is resolved per
request by AccessService.
"""
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
import logging

from apps.core.permissions import IsActiveUser
from apps.rbac.roles import Action, Resource, serialize_permissions
from apps.rbac.services import AccessService
from apps.tenants.serializers import (
    TenantMemberSerializer,
    TenantSerializer,
    UserTenantSerializer,
)
from apps.tenants.services import TenantService

logger = logging.getLogger(__name__)

ERROR_RESPONSE = {
    'type': 'object',
    'properties': {
        'error': {'type': 'string'},
        'code': {'type': 'string'},
        'details': {'type': 'object'},
        'request_id': {'type': 'string'},
    }
}


class TenantListView(APIView):
    """
    List tenants the caller belongs to.

    GET /v1/tenants

    Master admins see every tenant.
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="List my tenants",
        description="Tenants the authenticated user is a member of, with their role in each. "
                    "Master administrators see all tenants.",
        responses={200: UserTenantSerializer(many=True), 401: ERROR_RESPONSE},
        tags=['Tenants']
    )
    def get(self, request):
        tenants = TenantService.get_user_tenants(request.user)
        serializer = UserTenantSerializer(tenants, many=True)
        return Response({'data': serializer.data}, status=status.HTTP_200_OK)


class TenantDetailView(APIView):
    """
    Get one tenant.

    GET /v1/tenants/{tenant_key}
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="Get tenant",
        description="Requires `tenant:read` in the tenant, or master administrator status.",
        responses={200: TenantSerializer, 401: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Tenants']
    )
    def get(self, request, tenant_key):
        context = AccessService.authorize(request.user, tenant_key, Resource.TENANT, Action.READ)
        return Response({'data': TenantSerializer(context.tenant).data}, status=status.HTTP_200_OK)


class TenantMembersView(APIView):
    """
    List members of a tenant.

    GET /v1/tenants/{tenant_key}/members
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="List tenant members",
        description="Requires `tenant_member:read` in the tenant, or master administrator status.",
        responses={200: TenantMemberSerializer(many=True), 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Tenants']
    )
    def get(self, request, tenant_key):
        context = AccessService.authorize(request.user, tenant_key, Resource.TENANT_MEMBER, Action.READ)
        members = TenantService.get_members(context)
        return Response({'data': TenantMemberSerializer(members, many=True).data}, status=status.HTTP_200_OK)


class TenantPermissionsView(APIView):
    """
    Permissions the caller holds in a tenant.

    GET /v1/tenants/{tenant_key}/permissions
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="Get my permissions in a tenant",
        description="Role-permission entries for the caller's role in this tenant. "
                    "`actions` is `\"*\"` when every action is granted.",
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'data': {
                        'type': 'object',
                        'properties': {
                            'role': {'type': 'string'},
                            'permissions': {'type': 'array', 'items': {'type': 'object'}},
                        }
                    }
                }
            },
            403: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
        },
        examples=[
            OpenApiExample(
                'Member permissions',
                value={'data': {'role': 'MEMBER', 'permissions': [
                    {'resource': 'tenant', 'actions': ['leave', 'read']},
                    {'resource': 'tenant_member', 'actions': ['read']},
                ]}},
                response_only=True
            ),
        ],
        tags=['Tenants']
    )
    def get(self, request, tenant_key):
        context = AccessService.resolve_access(request.user, tenant_key)
        return Response(
            {'data': {'role': context.role.value, 'permissions': serialize_permissions(context.role)}},
            status=status.HTTP_200_OK
        )


class TenantLeaveView(APIView):
    """
    Leave a tenant.

    POST /v1/tenants/{tenant_key}/leave
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="Leave tenant",
        description="Removes the caller's own membership. Requires `tenant:leave`.",
        request=None,
        responses={204: None, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate='30/m', method='POST', block=True))
    def post(self, request, tenant_key):
        TenantService.leave_tenant(request.user, tenant_key)
        return Response(status=status.HTTP_204_NO_CONTENT)
