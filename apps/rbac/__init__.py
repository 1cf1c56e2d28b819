"""
RBAC (Role-Based Access Control) application.

Provides the authorization core:
- Global user identity with the master-admin flag
- Static role-permission table and policy evaluation
- Tenant access gate and privileged-mutation guard
- Append-only audit trail
"""
