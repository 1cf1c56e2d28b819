"""
Tenant-scoped API URLs.

The tenant key is a slug or UUID and is resolved by AccessService.
"""
from django.urls import path

from apps.tenants.views import (
    TenantDetailView,
    TenantLeaveView,
    TenantListView,
    TenantMembersView,
    TenantPermissionsView,
)

app_name = 'tenants'

urlpatterns = [
    path('tenants', TenantListView.as_view(), name='tenant-list'),
    path('tenants/<str:tenant_key>', TenantDetailView.as_view(), name='tenant-detail'),
    path('tenants/<str:tenant_key>/members', TenantMembersView.as_view(), name='tenant-members'),
    path('tenants/<str:tenant_key>/permissions', TenantPermissionsView.as_view(), name='tenant-permissions'),
    path('tenants/<str:tenant_key>/leave', TenantLeaveView.as_view(), name='tenant-leave'),
]
