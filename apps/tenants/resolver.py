"""
Tenant resolution for incoming requests.

Strategies are tried in a fixed order and the first one that yields a tenant
wins:

1. ``X-Tenant-ID`` header. A value that is not a UUID is ignored; a UUID
   naming no tenant fails immediately.
2. Subdomain of ``APP_DOMAIN``, matched against the tenant slug.
3. The tenant the authenticated principal belongs to.

A resolved tenant that is not accessible is refused with ``TenantInactive``;
resolution never falls back to another tenant.
"""
import logging
import uuid
from django.conf import settings
from django.http.request import split_domain_port
from apps.core.exceptions import TenantInactive, TenantNotFound
from apps.tenants.context import TenantContext
from apps.tenants.models import Tenant

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {'localhost', '::1', '[::1]'}


class TenantResolver:
    """Resolve a request to a ``TenantContext``."""

    HEADER = 'header'
    SUBDOMAIN = 'subdomain'
    PRINCIPAL = 'principal'

    def __init__(self, header_name=None, app_domain=None, timeout_ms=None,
                 require_header_membership=None):
        self.header_name = header_name or settings.TENANT_HEADER
        self.app_domain = (app_domain or settings.APP_DOMAIN).lower()
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.TENANT_REQUEST_TIMEOUT_MS
        self.require_header_membership = (
            require_header_membership
            if require_header_membership is not None
            else settings.TENANT_HEADER_REQUIRES_MEMBERSHIP
        )

    def resolve(self, request, principal=None):
        """
        Return the TenantContext for ``request``.

        Raises:
            TenantNotFound: no strategy produced a tenant
            TenantInactive: the tenant exists but may not transact
        """
        if principal is None:
            principal = getattr(request, 'user', None)
        if principal is not None and not getattr(principal, 'is_authenticated', False):
            principal = None

        for source, strategy in (
            (self.HEADER, self._from_header),
            (self.SUBDOMAIN, self._from_subdomain),
            (self.PRINCIPAL, self._from_principal),
        ):
            tenant = strategy(request, principal)
            if tenant is not None:
                return self._bind(tenant, source, principal)

        logger.warning(
            "Tenant could not be resolved",
            extra={'request_id': getattr(request, 'request_id', None), 'path': request.path},
        )
        raise TenantNotFound('Tenant could not be resolved')

    def _bind(self, tenant, source, principal):
        if source == self.HEADER and self.require_header_membership:
            principal_tenant_id = getattr(principal, 'tenant_id', None)
            if principal_tenant_id is not None and principal_tenant_id != tenant.pk:
                logger.warning(
                    "Tenant header does not match principal membership",
                    extra={'tenant_id': str(tenant.pk)},
                )
                raise TenantNotFound()

        if not tenant.is_accessible():
            logger.warning(
                f"Inactive tenant attempted access: {tenant.slug}",
                extra={
                    'tenant_id': str(tenant.pk),
                    'subscription_status': tenant.subscription_status,
                },
            )
            raise TenantInactive(
                details={'subscription_status': tenant.subscription_status},
            )

        logger.debug(
            f"Tenant resolved from {source}: {tenant.slug}",
            extra={'tenant_id': str(tenant.pk)},
        )
        return TenantContext.for_tenant(tenant, source=source, timeout_ms=self.timeout_ms)

    def _from_header(self, request, principal):
        value = request.headers.get(self.header_name)
        if not value:
            return None
        try:
            tenant_id = uuid.UUID(value.strip())
        except ValueError:
            logger.debug("Ignoring malformed tenant header")
            return None
        tenant = Tenant.objects.filter(pk=tenant_id).first()
        if tenant is None:
            raise TenantNotFound(details={'tenant_id': str(tenant_id)})
        return tenant

    def _from_subdomain(self, request, principal):
        slug = self.subdomain_for(request.get_host())
        if not slug:
            return None
        return Tenant.objects.by_slug(slug)

    def subdomain_for(self, host):
        """The tenant slug encoded in ``host``, or None."""
        domain, _port = split_domain_port(host)
        if not domain:
            return None
        if domain == self.app_domain or domain in LOOPBACK_HOSTS or domain.startswith('127.'):
            return None
        suffix = f".{self.app_domain}"
        if not domain.endswith(suffix):
            return None
        return domain[:-len(suffix)] or None

    def _from_principal(self, request, principal):
        tenant_id = getattr(principal, 'tenant_id', None)
        if tenant_id is None:
            return None
        return Tenant.objects.filter(pk=tenant_id).first()
