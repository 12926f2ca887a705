"""
Services for tenant lifecycle management.
"""
from .tenant_service import TenantService

__all__ = [
    'TenantService',
]
