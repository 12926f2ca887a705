"""
RBAC app configuration.
"""
from django.apps import AppConfig


class RbacConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.rbac'
    verbose_name = 'RBAC (Role-Based Access Control)'

    def ready(self):
        """Import signals, attach policies and validate capability declarations."""
        import apps.rbac.signals  # noqa
        from apps.rbac import capabilities, policies
        from apps.rbac.models import User
        from apps.tenants.models import Tenant

        policies.register(User, policies.UserPolicy())
        policies.register(Tenant, policies.TenantPolicy())

        # Malformed declarations fail at startup, not at sync time.
        capabilities.discover()
