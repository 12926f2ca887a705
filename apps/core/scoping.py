"""
Row-level tenant scoping for tenant-owned models.

Every tenant-owned model uses ``TenantScopedManager`` as ``objects``. A query
must be bound to a tenant context before it touches the database:

    Patient.objects.for_context(request.tenant_context).filter(status='active')

The tenant predicate is AND-ed with whatever the caller adds, so an explicit
``filter(tenant_id=<other>)`` can only narrow the result to nothing. Creation
through a bound queryset stamps the tenant foreign key when it is unset.

Reading across tenants requires the explicit escape hatch
``Model.objects.without_tenant_scope()``, which is logged to the security
logger. An unbound query raises ``TenantScopeRequired`` when evaluated.
"""
import logging
from django.db import models
from apps.core.exceptions import InvalidArgument, TenantScopeRequired
from apps.core.logging import SecurityLogger
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet

logger = logging.getLogger(__name__)


class TenantScopedQuerySet(BaseModelQuerySet):
    """QuerySet that refuses to run until it is bound to a tenant or bypassed."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._tenant_context = None
        self._scope_bypassed = False

    def _clone(self):
        clone = super()._clone()
        clone._tenant_context = self._tenant_context
        clone._scope_bypassed = self._scope_bypassed
        return clone

    # -- binding ---------------------------------------------------------

    def for_context(self, context):
        """Restrict this queryset to the tenant carried by ``context``."""
        if context is None:
            raise TenantScopeRequired(
                f"{self.model.__name__} requires a tenant context"
            )
        clone = self._chain()
        clone._tenant_context = context
        if context.tenant is not None:
            return clone.filter(**{self.model.tenant_attname(): context.tenant.pk})
        if not context.is_platform:
            raise TenantScopeRequired(
                f"{self.model.__name__} requires a tenant context"
            )
        SecurityLogger.log_scope_bypass(self.model, reason='platform_context')
        return clone

    def without_tenant_scope(self, reason='without_tenant_scope'):
        """Explicitly read or write across every tenant."""
        SecurityLogger.log_scope_bypass(self.model, reason=reason)
        clone = self._chain()
        clone._scope_bypassed = True
        return clone

    @property
    def tenant_context(self):
        return self._tenant_context

    @property
    def is_scoped(self):
        return self._tenant_context is not None or self._scope_bypassed

    def _require_scope(self):
        if not self.is_scoped:
            raise TenantScopeRequired(
                f"{self.model.__name__} was queried without a tenant context; use "
                f"{self.model.__name__}.objects.for_context(context) or "
                f"{self.model.__name__}.objects.without_tenant_scope()"
            )

    # -- evaluation guards -------------------------------------------------

    def _fetch_all(self):
        if self._result_cache is None:
            self._require_scope()
        super()._fetch_all()

    def iterator(self, *args, **kwargs):
        self._require_scope()
        return super().iterator(*args, **kwargs)

    def count(self):
        self._require_scope()
        return super().count()

    def exists(self):
        self._require_scope()
        return super().exists()

    def aggregate(self, *args, **kwargs):
        self._require_scope()
        return super().aggregate(*args, **kwargs)

    # -- writes ------------------------------------------------------------

    def _stamp_tenant(self, values):
        """Fill the tenant key from the bound context when the caller left it unset."""
        field_name = self.model.tenant_field
        attname = self.model.tenant_attname()
        if values.get(field_name) is not None or values.get(attname) is not None:
            return values
        context = self._tenant_context
        if context is not None and context.tenant is not None:
            values[attname] = context.tenant.pk
        elif not self.is_scoped:
            raise TenantScopeRequired(
                f"Cannot create {self.model.__name__} without a tenant context"
            )
        return values

    def create(self, **kwargs):
        return super().create(**self._stamp_tenant(kwargs))

    def bulk_create(self, objs, *args, **kwargs):
        objs = list(objs)
        attname = self.model.tenant_attname()
        for obj in objs:
            if getattr(obj, attname) is None:
                stamped = self._stamp_tenant({})
                if attname in stamped:
                    setattr(obj, attname, stamped[attname])
        return super().bulk_create(objs, *args, **kwargs)

    def update(self, **kwargs):
        if self.model.tenant_field in kwargs or self.model.tenant_attname() in kwargs:
            raise InvalidArgument(
                f"The tenant of a {self.model.__name__} cannot be changed",
                details={'field': self.model.tenant_attname()},
            )
        self._require_scope()
        return super().update(**kwargs)

    def hard_delete(self):
        self._require_scope()
        return super().hard_delete()

    def with_deleted(self):
        """Same scope, soft-deleted rows included. Other filters are dropped."""
        queryset = self.model.objects.unfiltered_queryset()
        queryset._scope_bypassed = self._scope_bypassed
        if self._tenant_context is not None:
            queryset = queryset.for_context(self._tenant_context)
        return queryset


class TenantScopedManager(BaseModelManager.from_queryset(TenantScopedQuerySet)):
    """Default manager for tenant-owned models; hides soft-deleted rows."""

    def unfiltered_queryset(self):
        return self._queryset_class(model=self.model, using=self._db, hints=self._hints)

    def for_context(self, context, include_deleted=False):
        queryset = self.unfiltered_queryset() if include_deleted else self.get_queryset()
        return queryset.for_context(context)

    def without_tenant_scope(self, include_deleted=False, reason='without_tenant_scope'):
        queryset = self.unfiltered_queryset() if include_deleted else self.get_queryset()
        return queryset.without_tenant_scope(reason=reason)


class TenantScopedAllManager(models.Manager.from_queryset(TenantScopedQuerySet)):
    """Scoped manager that includes soft-deleted rows."""

    def unfiltered_queryset(self):
        return self.get_queryset()


class TenantOwnedModel(BaseModel):
    """
    Abstract base for rows that belong to exactly one tenant.

    Subclasses declare a ``tenant`` foreign key (override ``tenant_field`` to
    use another name). Once persisted with a tenant, the key never changes.
    """
    tenant_field = 'tenant'

    objects = TenantScopedManager()
    objects_with_deleted = TenantScopedAllManager()

    class Meta(BaseModel.Meta):
        abstract = True
        default_manager_name = 'objects'

    @classmethod
    def tenant_attname(cls):
        return cls._meta.get_field(cls.tenant_field).attname

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._persisted_tenant_id = instance.__dict__.get(cls.tenant_attname())
        return instance

    @property
    def owning_tenant_id(self):
        return getattr(self, self.tenant_attname())

    def save(self, *args, **kwargs):
        persisted = getattr(self, '_persisted_tenant_id', None)
        current = self.owning_tenant_id
        if persisted is not None and current != persisted:
            raise InvalidArgument(
                f"The tenant of a {self.__class__.__name__} cannot be changed",
                details={'field': self.tenant_attname()},
            )
        super().save(*args, **kwargs)
        self._persisted_tenant_id = current
