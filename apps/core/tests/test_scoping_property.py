"""
Property-based tests for tenant row scoping and PII masking.

For any population of rows spread over several tenants, a bound queryset
sees exactly its own tenant's rows, and masked log text never carries a
full phone number.
"""
import uuid
import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from apps.core.logging import PIIMasker
from apps.patients.models import Patient
from apps.tenants.context import TenantContext
from apps.tenants.models import Tenant


def make_tenant():
    suffix = uuid.uuid4().hex[:10]
    return Tenant.objects.create(name=f"Clinic {suffix}", slug=f"clinic-{suffix}", subscription_status='active')


@pytest.mark.django_db(transaction=True)
class TestScopingProperties:

    @given(counts=st.lists(st.integers(min_value=0, max_value=4), min_size=2, max_size=4))
    @settings(
        max_examples=15,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
    )
    def test_each_tenant_sees_only_its_rows(self, counts):
        tenants = [make_tenant() for _ in counts]
        for tenant, count in zip(tenants, counts):
            scoped = Patient.objects.for_context(TenantContext.for_tenant(tenant))
            for n in range(count):
                scoped.create(first_name=f"P{n}", last_name=tenant.slug)

        for tenant, count in zip(tenants, counts):
            rows = list(Patient.objects.for_context(TenantContext.for_tenant(tenant)))
            assert len(rows) == count
            assert {row.tenant_id for row in rows} <= {tenant.pk}

    @given(victim=st.integers(min_value=0, max_value=2))
    @settings(
        max_examples=10,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
    )
    def test_foreign_ids_never_resolve(self, victim):
        tenants = [make_tenant() for _ in range(3)]
        patients = [
            Patient.objects.for_context(TenantContext.for_tenant(tenant)).create(first_name='A', last_name='B')
            for tenant in tenants
        ]

        target = patients[victim]
        for index, tenant in enumerate(tenants):
            found = Patient.objects.for_context(TenantContext.for_tenant(tenant)).filter(pk=target.pk).exists()
            assert found is (index == victim)


class TestMaskingProperties:

    @given(digits=st.from_regex(r'\A\+?[0-9]{10,15}\Z'))
    @settings(max_examples=50)
    def test_phone_numbers_never_logged_whole(self, digits):
        masked = PIIMasker.mask_text(f"call {digits} today")

        assert digits not in masked
        assert masked.startswith(f"call {digits[:3]}")

    @given(value=st.text(min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_sensitive_keys_always_replaced(self, value):
        masked = PIIMasker.mask_dict({'email': value, 'patient_phone': value})
        assert masked == {'email': '********', 'patient_phone': '********'}
