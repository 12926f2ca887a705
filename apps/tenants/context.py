"""
Per-request tenant context.

A ``TenantContext`` is built once per request by the tenant resolver and
passed explicitly to everything that touches tenant-owned data. It is
immutable; there is no process-wide "current tenant".
"""
import time
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    tenant: Optional[object]
    source: str = 'explicit'
    deadline: Optional[float] = None
    is_platform: bool = False

    @classmethod
    def for_tenant(cls, tenant, source='explicit', timeout_ms=None):
        return cls(tenant=tenant, source=source, deadline=_deadline_from(timeout_ms))

    @classmethod
    def platform(cls, timeout_ms=None):
        """Tenantless context for platform operators and maintenance jobs."""
        return cls(tenant=None, source='platform', deadline=_deadline_from(timeout_ms), is_platform=True)

    @property
    def tenant_id(self):
        return self.tenant.pk if self.tenant is not None else None

    def remaining(self):
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def with_timeout(self, timeout_ms):
        return replace(self, deadline=_deadline_from(timeout_ms))


def _deadline_from(timeout_ms):
    if not timeout_ms:
        return None
    return time.monotonic() + timeout_ms / 1000.0


def current_tenant(request):
    """The tenant bound to ``request``, or None."""
    context = getattr(request, 'tenant_context', None)
    return context.tenant if context is not None else None


def current_tenant_id(request):
    tenant = current_tenant(request)
    return tenant.pk if tenant is not None else None
