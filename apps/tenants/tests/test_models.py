"""
Tests for tenant models.
"""
from datetime import timedelta
import pytest
from django.utils import timezone
from apps.patients.models import Patient
from apps.tenants.context import TenantContext
from apps.tenants.models import (
    PLAN_FEATURES, SubscriptionPlan, SubscriptionStatus, Tenant,
)


@pytest.mark.django_db
class TestTenantModel:
    """Test Tenant model."""

    def test_features_default_from_plan(self):
        tenant = Tenant.objects.create(name='Pro Clinic', slug='pro-clinic', subscription_plan='professional')
        assert tenant.features == PLAN_FEATURES['professional']
        assert tenant.has_feature('reports')

    def test_explicit_features_kept(self):
        tenant = Tenant.objects.create(name='Custom', slug='custom', features={'reports': True})
        assert tenant.features == {'reports': True}
        assert not tenant.has_feature('invoicing')

    def test_str(self, tenant):
        assert str(tenant) == 'Bright Smiles (bright-smiles)'

    @pytest.mark.parametrize('status, is_active, expected', [
        (SubscriptionStatus.TRIAL, True, True),
        (SubscriptionStatus.ACTIVE, True, True),
        (SubscriptionStatus.PAST_DUE, True, True),
        (SubscriptionStatus.CANCELED, True, False),
        (SubscriptionStatus.EXPIRED, True, False),
        (SubscriptionStatus.ACTIVE, False, False),
    ])
    def test_is_accessible(self, status, is_active, expected):
        tenant = Tenant(name='X', slug='x', subscription_status=status, is_active=is_active)
        assert tenant.is_accessible() is expected

    def test_accessible_manager(self, tenant, inactive_tenant):
        lapsed = Tenant.objects.create(name='Lapsed', slug='lapsed', subscription_status='canceled')
        accessible = set(Tenant.objects.accessible())
        assert tenant in accessible
        assert inactive_tenant not in accessible
        assert lapsed not in accessible

    def test_soft_deleted_tenant_hidden(self, tenant):
        tenant.delete()
        assert Tenant.objects.by_slug('bright-smiles') is None
        assert Tenant.objects_with_deleted.filter(slug='bright-smiles').exists()


@pytest.mark.django_db
class TestTrialHelpers:

    def test_running_trial(self):
        tenant = Tenant.objects.create(
            name='Trial', slug='trial',
            trial_ends_at=timezone.now() + timedelta(days=10, hours=1),
        )
        assert tenant.is_on_trial()
        assert not tenant.has_trial_expired()
        assert tenant.trial_days_remaining() == 10
        assert tenant in Tenant.objects.on_trial()

    def test_expired_trial(self):
        tenant = Tenant.objects.create(
            name='Trial', slug='trial',
            trial_ends_at=timezone.now() - timedelta(days=1),
        )
        assert not tenant.is_on_trial()
        assert tenant.has_trial_expired()
        assert tenant.trial_days_remaining() == 0
        assert tenant not in Tenant.objects.on_trial()

    def test_paid_tenant_is_not_on_trial(self, tenant):
        assert not tenant.is_on_trial()
        assert not tenant.has_trial_expired()

    def test_subscription_expiry(self, tenant):
        assert not tenant.has_subscription_expired()
        tenant.subscription_ends_at = timezone.now() - timedelta(minutes=1)
        assert tenant.has_subscription_expired()


@pytest.mark.django_db
class TestTenantSettings:

    def test_dotted_lookup(self, tenant):
        tenant.settings = {'appointments': {'slot_minutes': 30}}
        assert tenant.get_setting_value('appointments.slot_minutes') == 30
        assert tenant.get_setting_value('appointments.missing', 15) == 15
        assert tenant.get_setting_value('appointments.slot_minutes.deeper') is None

    def test_update_setting_creates_path(self, tenant):
        tenant.update_setting('reminders.sms.enabled', True)
        tenant.refresh_from_db()
        assert tenant.settings == {'reminders': {'sms': {'enabled': True}}}

    def test_update_setting_keeps_siblings(self, tenant):
        tenant.update_setting('appointments.slot_minutes', 30)
        tenant.update_setting('appointments.buffer_minutes', 5)
        tenant.refresh_from_db()
        assert tenant.settings['appointments'] == {'slot_minutes': 30, 'buffer_minutes': 5}


@pytest.mark.django_db
class TestPlanLimits:

    def test_plan_limits(self):
        assert SubscriptionPlan.BASIC.max_users() == 5
        assert SubscriptionPlan.PROFESSIONAL.max_patients() == 5000
        assert SubscriptionPlan.ENTERPRISE.max_users() == -1

    def test_user_seat_limit(self, tenant, make_user):
        for _ in range(SubscriptionPlan.BASIC.max_users() - 1):
            make_user(tenant)
        assert tenant.can_add_user()

        make_user(tenant)
        assert not tenant.can_add_user()

    def test_enterprise_is_unlimited(self, tenant, make_user):
        tenant.subscription_plan = SubscriptionPlan.ENTERPRISE
        for _ in range(6):
            make_user(tenant)
        assert tenant.can_add_user()
        assert tenant.can_add_patient()

    def test_patient_limit_counts_own_tenant_only(self, tenant, other_tenant, monkeypatch):
        monkeypatch.setitem(PLAN_FEATURES['basic'], 'max_patients', 1)
        Patient.objects.for_context(TenantContext.for_tenant(other_tenant)).create(
            first_name='Alan', last_name='Turing',
        )
        assert tenant.can_add_patient()

        Patient.objects.for_context(TenantContext.for_tenant(tenant)).create(
            first_name='Grace', last_name='Hopper',
        )
        assert not tenant.can_add_patient()
