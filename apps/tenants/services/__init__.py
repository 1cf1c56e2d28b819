"""
Services for tenant lifecycle and membership management.
"""
from .tenant_service import TenantService

__all__ = ['TenantService']
