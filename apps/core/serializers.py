"""
Shared serializer behaviour.
"""
from apps.core.exceptions import InvalidArgument

TENANT_KEYS = ('tenant', 'tenant_id')


class RejectClientTenantMixin:
    """
    Refuse request bodies that try to choose the owning tenant.

    The tenant always comes from the resolved request context; a client that
    names one gets ``INVALID_ARGUMENT`` instead of having it silently ignored.
    """

    def to_internal_value(self, data):
        if hasattr(data, 'keys'):
            supplied = [key for key in TENANT_KEYS if key in data]
            if supplied:
                raise InvalidArgument(
                    'The owning tenant cannot be set by the client',
                    details={'fields': supplied},
                )
        return super().to_internal_value(data)
