"""
Tenant models for multi-tenant isolation.

A tenant is one clinic. Whether it may transact at all is decided by
``Tenant.is_accessible()``: the account must be switched on and its
subscription must be in a state that allows access.
"""
from django.db import models
from django.db.models import Q
from django.utils import timezone
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet
from apps.rbac import capabilities


class SubscriptionStatus(models.TextChoices):
    TRIAL = 'trial', 'Trial'
    ACTIVE = 'active', 'Active'
    PAST_DUE = 'past_due', 'Past Due'
    CANCELED = 'canceled', 'Canceled'
    EXPIRED = 'expired', 'Expired'

    @classmethod
    def accessible(cls):
        """Statuses that still allow a tenant to use the platform."""
        return [cls.TRIAL, cls.ACTIVE, cls.PAST_DUE]

    def allows_access(self):
        return self in self.accessible()


class SubscriptionPlan(models.TextChoices):
    BASIC = 'basic', 'Basic'
    PROFESSIONAL = 'professional', 'Professional'
    ENTERPRISE = 'enterprise', 'Enterprise'

    def default_features(self):
        return dict(PLAN_FEATURES[self.value])

    def max_users(self):
        return PLAN_FEATURES[self.value]['max_users']

    def max_patients(self):
        return PLAN_FEATURES[self.value]['max_patients']


UNLIMITED = -1

PLAN_FEATURES = {
    'basic': {
        'max_users': 5,
        'max_patients': 500,
        'appointments': True,
        'invoicing': True,
        'reports': False,
        'api_access': False,
    },
    'professional': {
        'max_users': 25,
        'max_patients': 5000,
        'appointments': True,
        'invoicing': True,
        'reports': True,
        'api_access': True,
    },
    'enterprise': {
        'max_users': UNLIMITED,
        'max_patients': UNLIMITED,
        'appointments': True,
        'invoicing': True,
        'reports': True,
        'api_access': True,
    },
}


class TenantManager(BaseModelManager):
    """Manager for tenant directory lookups."""

    def accessible(self):
        """Tenants that are switched on and have an access-granting subscription."""
        return self.filter(
            is_active=True,
            subscription_status__in=SubscriptionStatus.accessible(),
        )

    def on_trial(self):
        return self.filter(subscription_status=SubscriptionStatus.TRIAL).filter(
            Q(trial_ends_at__isnull=True) | Q(trial_ends_at__gt=timezone.now())
        )

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


@capabilities.register
class Tenant(BaseModel):
    """
    Tenant model representing an isolated clinic account.

    Tenants are soft deleted and never hard-removed by the platform.
    """

    name = models.CharField(max_length=255, help_text="Clinic name")
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier, also used as the subdomain"
    )
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=50, blank=True, default='')
    address = models.JSONField(null=True, blank=True)
    country_code = models.CharField(max_length=2, blank=True, default='')

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Master switch; an inactive tenant is refused on every request"
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.TRIAL,
        db_index=True,
    )
    subscription_plan = models.CharField(
        max_length=20,
        choices=SubscriptionPlan.choices,
        default=SubscriptionPlan.BASIC,
    )
    trial_ends_at = models.DateTimeField(null=True, blank=True)
    subscription_ends_at = models.DateTimeField(null=True, blank=True)

    default_currency = models.CharField(max_length=3, default='USD')
    timezone = models.CharField(max_length=50, default='UTC')
    locale = models.CharField(max_length=10, default='en')
    features = models.JSONField(default=dict, blank=True)
    settings = models.JSONField(default=dict, blank=True)

    objects = TenantManager.from_queryset(BaseModelQuerySet)()

    class Meta:
        db_table = 'tenants'
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active', 'subscription_status'], name='tenants_access_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def save(self, *args, **kwargs):
        if not self.features:
            self.features = SubscriptionPlan(self.subscription_plan).default_features()
        super().save(*args, **kwargs)

    def is_accessible(self):
        """True when the tenant may transact on the platform."""
        return self.is_active and self.subscription_status in SubscriptionStatus.accessible()

    def is_on_trial(self):
        if self.subscription_status != SubscriptionStatus.TRIAL:
            return False
        return self.trial_ends_at is None or self.trial_ends_at > timezone.now()

    def has_trial_expired(self):
        if self.subscription_status != SubscriptionStatus.TRIAL:
            return False
        return self.trial_ends_at is not None and self.trial_ends_at <= timezone.now()

    def has_subscription_expired(self):
        return self.subscription_ends_at is not None and self.subscription_ends_at <= timezone.now()

    def trial_days_remaining(self):
        if not self.is_on_trial() or self.trial_ends_at is None:
            return 0
        return max(0, (self.trial_ends_at - timezone.now()).days)

    def get_setting_value(self, key, default=None):
        """Read a setting by dotted path, e.g. ``'appointments.slot_minutes'``."""
        value = self.settings or {}
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def update_setting(self, key, value):
        settings = dict(self.settings or {})
        node = settings
        parts = key.split('.')
        for part in parts[:-1]:
            child = node.get(part)
            node[part] = dict(child) if isinstance(child, dict) else {}
            node = node[part]
        node[parts[-1]] = value
        self.settings = settings
        self.save(update_fields=['settings', 'updated_at'])

    def has_feature(self, feature):
        return bool((self.features or {}).get(feature, False))

    def can_add_user(self):
        """Whether the plan's seat limit leaves room for one more user."""
        from django.contrib.auth import get_user_model
        from apps.tenants.context import TenantContext

        max_users = SubscriptionPlan(self.subscription_plan).max_users()
        if max_users == UNLIMITED:
            return True
        users = get_user_model().objects.for_context(TenantContext.for_tenant(self))
        return users.count() < max_users

    def can_add_patient(self):
        """Whether the plan's patient limit leaves room for one more patient."""
        from apps.patients.models import Patient
        from apps.tenants.context import TenantContext

        max_patients = SubscriptionPlan(self.subscription_plan).max_patients()
        if max_patients == UNLIMITED:
            return True
        patients = Patient.objects.for_context(TenantContext.for_tenant(self))
        return patients.count() < max_patients
