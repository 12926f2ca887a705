"""
Tests for resource policies.
"""
import pytest
from apps.patients.models import Patient
from apps.rbac import policies
from apps.rbac.authorization import evaluate
from apps.rbac.models import User
from apps.rbac.policies import PolicyRegistry, TenantOwnedPolicy, permission_name
from apps.rbac.services import RBACService
from apps.tenants.models import Tenant


class TestPermissionName:

    def test_restore_maps_to_delete(self):
        assert permission_name('restore', 'patients') == 'delete_patients'
        assert permission_name('update', 'patients') == 'update_patients'


class TestPolicyRegistry:

    def test_default_policy(self):
        registry = PolicyRegistry()
        assert isinstance(registry.policy_for(Patient), TenantOwnedPolicy)

    def test_register_as_decorator(self):
        registry = PolicyRegistry()

        @registry.register(Patient)
        class StrictPatientPolicy(TenantOwnedPolicy):
            pass

        assert isinstance(registry.policy_for(Patient), StrictPatientPolicy)

    def test_platform_models_have_policies(self):
        assert isinstance(policies.policy_for(User), policies.UserPolicy)
        assert isinstance(policies.policy_for(Tenant), policies.TenantPolicy)
        assert type(policies.policy_for(Patient)) is TenantOwnedPolicy


@pytest.mark.django_db
class TestUserPolicy:
    """Everyone may read and edit their own record."""

    def test_self_view_and_update_without_permission(self, catalog, assistant):
        assert evaluate(assistant, 'view_users', assistant) == policies.ALLOW_SELF
        assert evaluate(assistant, 'update_users', assistant) == policies.ALLOW_SELF

    def test_other_users_need_permission(self, catalog, assistant, dentist):
        assert evaluate(assistant, 'view_users', dentist) == policies.DENY_MISSING_PERMISSION
        assert evaluate(dentist, 'view_users', assistant) == policies.ALLOW_PERMISSION
        assert evaluate(dentist, 'update_users', assistant) == policies.DENY_MISSING_PERMISSION

    def test_users_of_other_tenants_hidden(self, catalog, dentist, other_admin):
        assert evaluate(dentist, 'view_users', other_admin) == policies.DENY_CROSS_TENANT

    def test_direct_grants_never_reflexive(self, catalog, dentist):
        assert evaluate(dentist, 'grant_users', dentist) == policies.DENY_MISSING_PERMISSION


@pytest.mark.django_db
class TestTenantPolicy:

    def test_member_needs_permission_for_own_tenant(self, catalog, dentist, tenant):
        assert evaluate(dentist, 'view_tenants', tenant) == policies.DENY_MISSING_PERMISSION

        RBACService.grant_permission(dentist, 'view_tenants')
        RBACService.invalidate_user_cache(dentist.pk)

        assert evaluate(dentist, 'view_tenants', tenant) == policies.ALLOW_PERMISSION

    def test_member_never_sees_other_tenant(self, catalog, dentist, other_tenant):
        RBACService.grant_permission(dentist, 'view_tenants')
        assert evaluate(dentist, 'view_tenants', other_tenant) == policies.DENY_CROSS_TENANT

    def test_platform_operator_decided_by_permission(self, catalog, make_user, tenant):
        operator = make_user(None, 'receptionist')
        assert evaluate(operator, 'view_tenants', tenant) == policies.DENY_MISSING_PERMISSION

        RBACService.grant_permission(operator, 'view_tenants')
        RBACService.invalidate_user_cache(operator.pk)

        assert evaluate(operator, 'view_tenants', tenant) == policies.ALLOW_PERMISSION

    def test_platform_operator_force_delete_is_admin_only(self, catalog, make_user, tenant):
        operator = make_user(None, 'receptionist')
        RBACService.grant_permission(operator, 'delete_tenants')
        assert evaluate(operator, 'force_delete_tenants', tenant) == policies.DENY_ADMIN_ONLY
