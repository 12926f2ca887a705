"""
Pytest configuration and fixtures.
"""
import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_cache():
    """Permission sets are cached; start every test cold."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _test_hosts(settings):
    settings.ALLOWED_HOSTS = ['*']
    settings.APP_DOMAIN = 'clinics.test'
    settings.SECURE_SSL_REDIRECT = False


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def catalog(db):
    """Sync the permission catalog and role defaults from capability declarations."""
    from apps.rbac.sync import sync
    return sync()


@pytest.fixture
def tenant(db):
    """An accessible clinic."""
    from apps.tenants.models import SubscriptionStatus, Tenant
    return Tenant.objects.create(
        name='Bright Smiles',
        slug='bright-smiles',
        subscription_status=SubscriptionStatus.ACTIVE,
    )


@pytest.fixture
def other_tenant(db):
    """Create another clinic for isolation tests."""
    from apps.tenants.models import SubscriptionStatus, Tenant
    return Tenant.objects.create(
        name='Harbour Dental',
        slug='harbour-dental',
        subscription_status=SubscriptionStatus.ACTIVE,
    )


@pytest.fixture
def inactive_tenant(db):
    """A clinic that has been switched off."""
    from apps.tenants.models import SubscriptionStatus, Tenant
    return Tenant.objects.create(
        name='Closed Clinic',
        slug='closed-clinic',
        is_active=False,
        subscription_status=SubscriptionStatus.ACTIVE,
    )


@pytest.fixture
def make_user(db):
    """
    Factory for principals.

    ``tenant=None`` creates a platform principal.
    """
    from apps.rbac.models import User
    from apps.rbac.roles import UserRole
    from apps.tenants.context import TenantContext

    counter = {'n': 0}

    def _make_user(tenant, role=UserRole.ASSISTANT, email=None, password='Sup3r-secret!', **extra):
        counter['n'] += 1
        if email is None:
            email = f"{role}{counter['n']}@{tenant.slug if tenant else 'platform'}.test"
        context = TenantContext.for_tenant(tenant) if tenant is not None else TenantContext.platform()
        return User.objects.for_context(context).create_user(
            email=email,
            password=password,
            primary_role=role,
            **extra,
        )

    return _make_user


@pytest.fixture
def admin_user(make_user, tenant):
    return make_user(tenant, 'admin', email='admin@bright-smiles.test')


@pytest.fixture
def dentist(make_user, tenant):
    return make_user(tenant, 'dentist', email='dentist@bright-smiles.test', first_name='Ada', last_name='Molar')


@pytest.fixture
def receptionist(make_user, tenant):
    return make_user(tenant, 'receptionist', email='desk@bright-smiles.test')


@pytest.fixture
def assistant(make_user, tenant):
    return make_user(tenant, 'assistant', email='assistant@bright-smiles.test')


@pytest.fixture
def other_admin(make_user, other_tenant):
    return make_user(other_tenant, 'admin', email='admin@harbour-dental.test')


@pytest.fixture
def platform_admin(make_user):
    """Platform operator with the admin role and no tenant."""
    return make_user(None, 'admin', email='ops@platform.test')


@pytest.fixture
def patient(db, tenant):
    from apps.patients.models import Patient
    from apps.tenants.context import TenantContext
    return Patient.objects.for_context(TenantContext.for_tenant(tenant)).create(
        first_name='Grace',
        last_name='Hopper',
        email='grace@example.com',
        phone='+15550100',
    )


@pytest.fixture
def other_patient(db, other_tenant):
    from apps.patients.models import Patient
    from apps.tenants.context import TenantContext
    return Patient.objects.for_context(TenantContext.for_tenant(other_tenant)).create(
        first_name='Alan',
        last_name='Turing',
    )


@pytest.fixture
def client_for():
    """
    Return an API client authenticated as ``user``.

    The tenant header is sent when ``tenant`` is given.
    """
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def _client_for(user, tenant=None):
        client = APIClient()
        credentials = {'HTTP_AUTHORIZATION': f"Bearer {AuthService.generate_jwt(user)}"}
        if tenant is not None:
            credentials['HTTP_X_TENANT_ID'] = str(tenant.pk)
        client.credentials(**credentials)
        return client

    return _client_for
