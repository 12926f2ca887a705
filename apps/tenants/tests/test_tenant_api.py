"""
Tests for the current-tenant and platform tenant directory endpoints.
"""
import pytest
from apps.rbac.services import RBACService
from apps.tenants.models import Tenant


@pytest.mark.django_db
class TestCurrentTenantAPI:

    def test_admin_reads_own_tenant(self, client_for, admin_user, tenant):
        response = client_for(admin_user).get('/v1/tenant')

        assert response.status_code == 200
        assert response.data['id'] == str(tenant.pk)
        assert response.data['is_accessible'] is True

    def test_role_without_permission_is_forbidden(self, client_for, catalog, dentist):
        response = client_for(dentist).get('/v1/tenant')

        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'
        assert response.data['error']['ability'] == 'view_tenants'

    def test_direct_grant_allows_view(self, client_for, catalog, dentist, tenant):
        RBACService.grant_permission(dentist, 'view_tenants')

        response = client_for(dentist).get('/v1/tenant')

        assert response.status_code == 200
        assert response.data['slug'] == tenant.slug

    def test_granted_member_cannot_view_foreign_tenant(self, client_for, catalog, dentist, other_tenant):
        RBACService.grant_permission(dentist, 'view_tenants')

        response = client_for(dentist, tenant=other_tenant).get('/v1/tenant')

        assert response.status_code == 404

    def test_admin_updates_own_tenant(self, client_for, admin_user, tenant):
        response = client_for(admin_user).patch(
            '/v1/tenant',
            {'name': 'Bright Smiles Dental', 'settings': {'appointments': {'slot_minutes': 20}}},
        )

        assert response.status_code == 200
        tenant.refresh_from_db()
        assert tenant.name == 'Bright Smiles Dental'
        assert tenant.get_setting_value('appointments.slot_minutes') == 20

    def test_subscription_fields_are_not_editable(self, client_for, admin_user, tenant):
        client_for(admin_user).patch('/v1/tenant', {'subscription_status': 'expired', 'is_active': False})

        tenant.refresh_from_db()
        assert tenant.subscription_status == 'active'
        assert tenant.is_active

    def test_anonymous_request_is_unauthenticated(self, api_client, tenant):
        response = api_client.get('/v1/tenant', HTTP_X_TENANT_ID=str(tenant.pk))

        assert response.status_code == 401
        assert response.data['error']['code'] == 'UNAUTHENTICATED'

    def test_foreign_header_rejected_when_membership_required(self, settings, client_for, admin_user, other_tenant):
        settings.TENANT_HEADER_REQUIRES_MEMBERSHIP = True

        response = client_for(admin_user, tenant=other_tenant).get('/v1/tenant')

        assert response.status_code == 404
        assert response.json()['error']['code'] == 'TENANT_NOT_FOUND'


@pytest.mark.django_db
class TestPlatformTenantAPI:
    """Tenant directory for platform operators."""

    def test_list_tenants(self, client_for, platform_admin, tenant, other_tenant):
        response = client_for(platform_admin).get('/v1/platform/tenants/')

        assert response.status_code == 200
        assert [row['slug'] for row in response.data['results']] == ['bright-smiles', 'harbour-dental']

    def test_list_filters(self, client_for, platform_admin, tenant, inactive_tenant):
        response = client_for(platform_admin).get('/v1/platform/tenants/', {'accessible': 'true'})
        assert [row['slug'] for row in response.data['results']] == ['bright-smiles']

    def test_tenant_principal_refused(self, client_for, admin_user):
        response = client_for(admin_user).get('/v1/platform/tenants/')

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'FORBIDDEN'

    def test_platform_principal_without_permission_refused(self, client_for, catalog, make_user):
        operator = make_user(None, 'receptionist')

        response = client_for(operator).get('/v1/platform/tenants/')

        assert response.status_code == 403
        assert response.data['error']['ability'] == 'view_tenants'

    def test_provision_tenant(self, client_for, platform_admin):
        response = client_for(platform_admin).post('/v1/platform/tenants/', {
            'name': 'Maple Dental',
            'plan': 'professional',
            'admin_email': 'owner@maple.test',
            'admin_password': 'Sup3r-secret!',
        })

        assert response.status_code == 201
        assert response.data['slug'] == 'maple-dental'
        assert response.data['subscription_status'] == 'trial'
        assert response.data['features']['reports'] is True

    def test_provision_requires_password_with_admin_email(self, client_for, platform_admin):
        response = client_for(platform_admin).post('/v1/platform/tenants/', {
            'name': 'Maple Dental',
            'admin_email': 'owner@maple.test',
        })

        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_ARGUMENT'
        assert 'admin_password' in response.data['error']['details']

    def test_soft_delete_and_restore(self, client_for, platform_admin, tenant):
        client = client_for(platform_admin)

        assert client.delete(f'/v1/platform/tenants/{tenant.pk}/').status_code == 204
        assert not Tenant.objects.filter(pk=tenant.pk).exists()

        response = client.post(f'/v1/platform/tenants/{tenant.pk}/restore/')
        assert response.status_code == 200
        assert Tenant.objects.filter(pk=tenant.pk).exists()

    def test_force_delete_refused_while_tenant_owns_data(self, client_for, platform_admin, tenant, patient):
        response = client_for(platform_admin).delete(f'/v1/platform/tenants/{tenant.pk}/force/')

        assert response.status_code == 409
        assert response.data['error']['code'] == 'RESOURCE_CONFLICT'
        assert Tenant.objects.filter(pk=tenant.pk).exists()

    def test_force_delete_empty_tenant(self, client_for, platform_admin, other_tenant):
        response = client_for(platform_admin).delete(f'/v1/platform/tenants/{other_tenant.pk}/force/')

        assert response.status_code == 204
        assert not Tenant.objects_with_deleted.filter(pk=other_tenant.pk).exists()

    def test_change_subscription(self, client_for, platform_admin, tenant):
        response = client_for(platform_admin).post(
            f'/v1/platform/tenants/{tenant.pk}/subscription/',
            {'subscription_status': 'canceled'},
        )

        assert response.status_code == 200
        assert response.data['subscription_status'] == 'canceled'
        assert response.data['is_accessible'] is False

    def test_unknown_tenant_is_not_found(self, client_for, platform_admin):
        response = client_for(platform_admin).get('/v1/platform/tenants/00000000-0000-0000-0000-000000000000/')
        assert response.status_code == 404
