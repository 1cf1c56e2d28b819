"""
Admin API views for master administrators.

Provides endpoints for:
- Tenant listing, creation, update and deletion
- Tenant membership management

Reads pass the system-scope Access Gate here. Mutating handlers delegate
to TenantService, which enforces master-admin status and records the
audit entry.
"""
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView
import logging

from apps.core.permissions import IsActiveUser
from apps.rbac.roles import Action, Resource
from apps.rbac.services import AccessService
from apps.tenants.serializers import (
    AdminTenantSerializer,
    MemberAddSerializer,
    MemberRoleSerializer,
    TenantCreateSerializer,
    TenantMemberSerializer,
    TenantSerializer,
    TenantUpdateSerializer,
)
from apps.tenants.services import TenantService
from apps.tenants.views import ERROR_RESPONSE

logger = logging.getLogger(__name__)

MUTATION_RATE = '60/m'


def _validated(serializer_class, data, partial=False):
    serializer = serializer_class(data=data, partial=partial)
    if not serializer.is_valid():
        raise DRFValidationError(serializer.errors)
    return serializer.validated_data


class AdminTenantListView(APIView):
    """
    List or create tenants (master admin only).

    GET  /v1/admin/tenants
    POST /v1/admin/tenants
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="List all tenants (admin)",
        description="Every tenant with its member count. Requires master administrator status.",
        responses={200: AdminTenantSerializer(many=True), 403: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    def get(self, request):
        tenants = TenantService.get_all_tenants(request.user)
        return Response({'data': AdminTenantSerializer(tenants, many=True).data}, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create tenant (admin)",
        description="""
Create a tenant. The slug is derived from the name when omitted.
Records a CREATE_TENANT audit entry.

**Example curl:**
```bash
curl -X POST https://api.example.com/v1/admin/tenants \\
  -H "Authorization: Bearer {jwt_token}" \\
  -H "Content-Type: application/json" \\
  -d '{"name": "Acme", "slug": "acme"}'
```
        """,
        request=TenantCreateSerializer,
        responses={201: TenantSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                'Create Tenant Request',
                value={'name': 'Acme', 'slug': 'acme', 'default_role': 'MEMBER'},
                request_only=True
            ),
        ],
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='POST', block=True))
    def post(self, request):
        data = _validated(TenantCreateSerializer, request.data)

        tenant = TenantService.create_tenant(
            request.user,
            name=data['name'],
            slug=data.get('slug') or None,
            domain=data.get('domain'),
            default_role=data.get('default_role', 'MEMBER'),
        )
        return Response({'data': TenantSerializer(tenant).data}, status=status.HTTP_201_CREATED)


class AdminTenantDetailView(APIView):
    """
    Get, update or delete one tenant (master admin only).

    GET    /v1/admin/tenants/{tenant_key}
    PATCH  /v1/admin/tenants/{tenant_key}
    DELETE /v1/admin/tenants/{tenant_key}
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="Get tenant details (admin)",
        responses={200: TenantSerializer, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    def get(self, request, tenant_key):
        AccessService.authorize_system(request.user, Resource.ADMIN_TENANTS, Action.READ)
        context = AccessService.authorize(request.user, tenant_key, Resource.TENANT, Action.READ)
        members = TenantService.get_members(context)

        payload = TenantSerializer(context.tenant).data
        payload['members'] = TenantMemberSerializer(members, many=True).data
        return Response({'data': payload}, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update tenant (admin)",
        description="Partial update of name, slug, domain or default_role. Records an UPDATE_TENANT audit entry.",
        request=TenantUpdateSerializer,
        responses={200: TenantSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='PATCH', block=True))
    def patch(self, request, tenant_key):
        data = _validated(TenantUpdateSerializer, request.data, partial=True)
        tenant = TenantService.update_tenant(request.user, tenant_key, dict(data))
        return Response({'data': TenantSerializer(tenant).data}, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Delete tenant (admin)",
        description="Deletes the tenant and its memberships. Records a DELETE_TENANT audit entry.",
        responses={204: None, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='DELETE', block=True))
    def delete(self, request, tenant_key):
        TenantService.delete_tenant(request.user, tenant_key)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AdminTenantMembersView(APIView):
    """
    List or add members of a tenant (master admin only).

    GET  /v1/admin/tenants/{tenant_key}/members
    POST /v1/admin/tenants/{tenant_key}/members
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="List tenant members (admin)",
        responses={200: TenantMemberSerializer(many=True), 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    def get(self, request, tenant_key):
        AccessService.authorize_system(request.user, Resource.ADMIN_TENANTS, Action.READ)
        context = AccessService.authorize(request.user, tenant_key, Resource.TENANT_MEMBER, Action.READ)
        members = TenantService.get_members(context)
        return Response({'data': TenantMemberSerializer(members, many=True).data}, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Add tenant member (admin)",
        description="Adds the user, or changes their role if already a member. "
                    "Without a role the tenant's default role applies. Records an ADD_TENANT_MEMBER audit entry.",
        request=MemberAddSerializer,
        responses={201: TenantMemberSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                'Add Member Request',
                value={'user': 'alice@example.com', 'role': 'MEMBER'},
                request_only=True
            ),
        ],
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='POST', block=True))
    def post(self, request, tenant_key):
        data = _validated(MemberAddSerializer, request.data)
        member = TenantService.add_member(request.user, tenant_key, data['user'], role=data.get('role'))
        return Response({'data': TenantMemberSerializer(member).data}, status=status.HTTP_201_CREATED)


class AdminTenantMemberDetailView(APIView):
    """
    Change a member's role or remove the member (master admin only).

    PATCH  /v1/admin/tenants/{tenant_key}/members/{member_id}
    DELETE /v1/admin/tenants/{tenant_key}/members/{member_id}
    """
    permission_classes = [IsActiveUser]

    @extend_schema(
        summary="Change member role (admin)",
        description="Records an UPDATE_TENANT_MEMBER_ROLE audit entry.",
        request=MemberRoleSerializer,
        responses={200: TenantMemberSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='PATCH', block=True))
    def patch(self, request, tenant_key, member_id):
        data = _validated(MemberRoleSerializer, request.data)
        member = TenantService.update_member_role(request.user, tenant_key, member_id, data['role'])
        return Response({'data': TenantMemberSerializer(member).data}, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Remove member (admin)",
        description="Records a REMOVE_TENANT_MEMBER audit entry.",
        responses={204: None, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        tags=['Admin - Tenants']
    )
    @method_decorator(ratelimit(key='user_or_ip', rate=MUTATION_RATE, method='DELETE', block=True))
    def delete(self, request, tenant_key, member_id):
        TenantService.remove_member(request.user, tenant_key, member_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
