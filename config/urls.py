"""
URL configuration for the administration API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),

    # Tenant-scoped endpoints (tenant list, details, members, permissions, leave)
    path('v1/', include('apps.tenants.urls')),

    # Master-admin tenant management
    path('v1/', include('apps.tenants.urls_admin')),

    # Master-admin users, master admins and audit logs
    path('v1/', include('apps.rbac.urls')),
]
