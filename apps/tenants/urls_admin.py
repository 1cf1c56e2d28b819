"""
Master-admin tenant API URLs.
"""
from django.urls import path

from apps.tenants.views_admin import (
    AdminTenantDetailView,
    AdminTenantListView,
    AdminTenantMemberDetailView,
    AdminTenantMembersView,
)

app_name = 'tenants_admin'

urlpatterns = [
    path('admin/tenants', AdminTenantListView.as_view(), name='admin-tenant-list'),
    path('admin/tenants/<str:tenant_key>', AdminTenantDetailView.as_view(), name='admin-tenant-detail'),
    path('admin/tenants/<str:tenant_key>/members', AdminTenantMembersView.as_view(), name='admin-tenant-members'),
    path('admin/tenants/<str:tenant_key>/members/<uuid:member_id>',
         AdminTenantMemberDetailView.as_view(),
         name='admin-tenant-member-detail'),
]
