"""
Tenant management service.

Handles tenant lifecycle operations including:
- Provisioning a clinic on a trial, optionally with its first administrator
- Subscription status changes
- Soft deletion and restoration
"""
import logging
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from apps.core.exceptions import InvalidArgument
from apps.rbac.models import User
from apps.rbac.roles import UserRole
from apps.tenants.context import TenantContext
from apps.tenants.models import SubscriptionPlan, SubscriptionStatus, Tenant

logger = logging.getLogger(__name__)


class TenantService:
    """Service for tenant lifecycle management."""

    @staticmethod
    def unique_slug(name: str, slug: Optional[str] = None) -> str:
        """Slug for ``name``, suffixed with a counter when already taken."""
        base = slugify(slug or name)[:90] or 'clinic'
        candidate = base
        counter = 1
        while Tenant.objects_with_deleted.filter(slug=candidate).exists():
            counter += 1
            candidate = f"{base}-{counter}"
        return candidate

    @classmethod
    @transaction.atomic
    def provision(cls, name: str, slug: Optional[str] = None, email: str = '',
                  plan: str = SubscriptionPlan.BASIC, trial_days: Optional[int] = None,
                  admin_email: Optional[str] = None, admin_password: Optional[str] = None,
                  **attributes) -> Tenant:
        """
        Create a tenant on a trial.

        When ``admin_email`` is given the clinic's first administrator is
        created in the same transaction.
        """
        if not name or not name.strip():
            raise InvalidArgument('Tenant name is required', details={'field': 'name'})
        if slug and Tenant.objects_with_deleted.filter(slug=slug).exists():
            raise InvalidArgument(f"Slug '{slug}' is already taken", details={'field': 'slug'})
        if trial_days is None:
            trial_days = settings.DEFAULT_TRIAL_DAYS

        tenant = Tenant.objects.create(
            name=name.strip(),
            slug=slug or cls.unique_slug(name),
            email=email,
            subscription_plan=plan,
            subscription_status=SubscriptionStatus.TRIAL,
            trial_ends_at=timezone.now() + timedelta(days=trial_days) if trial_days else None,
            **attributes,
        )

        if admin_email:
            if User.objects.by_email(admin_email) is not None:
                raise InvalidArgument(
                    f"A user with email {admin_email} already exists",
                    details={'field': 'admin_email'},
                )
            User.objects.for_context(TenantContext.for_tenant(tenant)).create_user(
                email=admin_email,
                password=admin_password,
                primary_role=UserRole.ADMIN,
            )

        logger.info(
            f"Tenant provisioned: {tenant.slug}",
            extra={'tenant_id': str(tenant.pk), 'plan': plan},
        )
        return tenant

    @staticmethod
    def change_subscription(tenant: Tenant, status: str, plan: Optional[str] = None,
                            ends_at=None) -> Tenant:
        """Move a tenant to another subscription status, and optionally plan."""
        if status not in SubscriptionStatus.values:
            raise InvalidArgument(f"Unknown subscription status '{status}'")
        update_fields = ['subscription_status', 'updated_at']
        tenant.subscription_status = status
        if plan is not None:
            if plan not in SubscriptionPlan.values:
                raise InvalidArgument(f"Unknown subscription plan '{plan}'")
            tenant.subscription_plan = plan
            tenant.features = SubscriptionPlan(plan).default_features()
            update_fields += ['subscription_plan', 'features']
        if ends_at is not None:
            tenant.subscription_ends_at = ends_at
            update_fields.append('subscription_ends_at')
        tenant.save(update_fields=update_fields)

        logger.info(
            f"Tenant {tenant.slug} subscription is now {status}",
            extra={'tenant_id': str(tenant.pk), 'subscription_status': status},
        )
        return tenant

    @staticmethod
    def deactivate(tenant: Tenant) -> Tenant:
        tenant.is_active = False
        tenant.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Tenant {tenant.slug} deactivated", extra={'tenant_id': str(tenant.pk)})
        return tenant

    @staticmethod
    def activate(tenant: Tenant) -> Tenant:
        tenant.is_active = True
        tenant.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Tenant {tenant.slug} activated", extra={'tenant_id': str(tenant.pk)})
        return tenant
