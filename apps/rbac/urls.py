"""
Master-admin API URLs: users, master administrators and the audit log.
"""
from django.urls import path

from apps.rbac.views import (
    AdminUserDetailView,
    AdminUserListView,
    AuditLogListView,
    MasterAdminDetailView,
    MasterAdminListView,
)

app_name = 'rbac'

urlpatterns = [
    path('admin/users', AdminUserListView.as_view(), name='admin-user-list'),
    path('admin/users/<str:user_id>', AdminUserDetailView.as_view(), name='admin-user-detail'),
    path('admin/master-admins', MasterAdminListView.as_view(), name='master-admin-list'),
    path('admin/master-admins/<str:user_id>', MasterAdminDetailView.as_view(), name='master-admin-detail'),
    path('admin/audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
