"""
Tests for user, direct-grant and permission catalog endpoints.
"""
import pytest
from apps.rbac.models import User, UserPermission
from apps.tenants.context import TenantContext


def users_of(tenant):
    return User.objects.for_context(TenantContext.for_tenant(tenant))


@pytest.mark.django_db
class TestUserList:

    def test_list_is_tenant_scoped(self, client_for, catalog, dentist, assistant, other_admin):
        response = client_for(dentist).get('/v1/users/')

        assert response.status_code == 200
        emails = {row['email'] for row in response.data['results']}
        assert emails == {dentist.email, assistant.email}

    def test_foreign_tenant_header_refused(self, client_for, catalog, admin_user, other_tenant, other_admin):
        response = client_for(admin_user, tenant=other_tenant).get('/v1/users/')

        assert response.status_code == 404
        assert response.data['error']['code'] == 'TENANT_NOT_FOUND'

    def test_role_filter(self, client_for, catalog, dentist, assistant):
        response = client_for(dentist).get('/v1/users/', {'role': 'assistant'})
        assert [row['email'] for row in response.data['results']] == [assistant.email]

    def test_list_requires_view_users(self, client_for, catalog, assistant):
        response = client_for(assistant).get('/v1/users/')

        assert response.status_code == 403
        assert response.data['error']['ability'] == 'view_users'

    def test_own_record_always_visible(self, client_for, catalog, assistant):
        response = client_for(assistant).get(f'/v1/users/{assistant.pk}/')

        assert response.status_code == 200
        assert response.data['email'] == assistant.email

    def test_other_record_needs_permission(self, client_for, catalog, assistant, dentist):
        response = client_for(assistant).get(f'/v1/users/{dentist.pk}/')
        assert response.status_code == 403

    def test_foreign_user_not_found(self, client_for, catalog, dentist, other_admin):
        response = client_for(dentist).get(f'/v1/users/{other_admin.pk}/')

        assert response.status_code == 404
        assert response.data['error']['code'] == 'NOT_FOUND'


@pytest.mark.django_db
class TestUserCreate:

    def test_admin_creates_user_in_own_tenant(self, client_for, admin_user, tenant):
        response = client_for(admin_user).post('/v1/users/', {
            'email': 'hygiene@bright-smiles.test',
            'password': 'Sup3r-secret!',
            'first_name': 'Hal',
            'primary_role': 'hygienist',
        })

        assert response.status_code == 201
        assert response.json()['tenant'] == str(tenant.pk)
        created = users_of(tenant).get(email='hygiene@bright-smiles.test')
        assert created.primary_role == 'hygienist'
        assert created.check_password('Sup3r-secret!')

    def test_client_cannot_choose_tenant(self, client_for, admin_user, other_tenant):
        response = client_for(admin_user).post('/v1/users/', {
            'email': 'sneaky@bright-smiles.test',
            'password': 'Sup3r-secret!',
            'tenant': str(other_tenant.pk),
        })

        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_ARGUMENT'
        assert not User.objects.by_email('sneaky@bright-smiles.test')

    def test_duplicate_email_rejected(self, client_for, admin_user, other_admin):
        response = client_for(admin_user).post('/v1/users/', {
            'email': other_admin.email,
            'password': 'Sup3r-secret!',
        })

        assert response.status_code == 400
        assert 'email' in response.data['error']['details']

    def test_requires_create_users(self, client_for, catalog, receptionist):
        response = client_for(receptionist).post('/v1/users/', {
            'email': 'new@bright-smiles.test',
            'password': 'Sup3r-secret!',
        })

        assert response.status_code == 403
        assert response.data['error']['ability'] == 'create_users'

    def test_seat_limit(self, client_for, admin_user, make_user, tenant):
        for _ in range(4):
            make_user(tenant)

        response = client_for(admin_user).post('/v1/users/', {
            'email': 'sixth@bright-smiles.test',
            'password': 'Sup3r-secret!',
        })

        assert response.status_code == 403
        assert response.data['error']['code'] == 'PLAN_LIMIT_EXCEEDED'


@pytest.mark.django_db
class TestUserUpdate:

    def test_self_profile_update(self, client_for, catalog, assistant):
        response = client_for(assistant).patch(f'/v1/users/{assistant.pk}/', {'first_name': 'Sam'})

        assert response.status_code == 200
        assistant.refresh_from_db()
        assert assistant.first_name == 'Sam'

    def test_non_admin_cannot_change_own_role(self, client_for, catalog, assistant):
        response = client_for(assistant).patch(f'/v1/users/{assistant.pk}/', {'primary_role': 'admin'})

        assert response.status_code == 400
        assistant.refresh_from_db()
        assert assistant.primary_role == 'assistant'

    def test_admin_changes_role(self, client_for, admin_user, dentist):
        response = client_for(admin_user).patch(f'/v1/users/{dentist.pk}/', {'primary_role': 'hygienist'})

        assert response.status_code == 200
        dentist.refresh_from_db()
        assert dentist.primary_role == 'hygienist'

    def test_admin_cannot_demote_self(self, client_for, admin_user):
        response = client_for(admin_user).patch(f'/v1/users/{admin_user.pk}/', {'primary_role': 'dentist'})
        assert response.status_code == 400

    def test_tenant_cannot_be_moved(self, client_for, admin_user, dentist, other_tenant):
        response = client_for(admin_user).patch(f'/v1/users/{dentist.pk}/', {'tenant': str(other_tenant.pk)})

        assert response.status_code == 400
        dentist.refresh_from_db()
        assert dentist.tenant_id == admin_user.tenant_id


@pytest.mark.django_db
class TestUserDeactivate:

    def test_admin_deactivates_user(self, client_for, admin_user, dentist, tenant):
        response = client_for(admin_user).delete(f'/v1/users/{dentist.pk}/')

        assert response.status_code == 204
        dentist.refresh_from_db()
        assert not dentist.is_active
        assert not dentist.is_deleted

    def test_deactivated_token_stops_working(self, client_for, admin_user, dentist):
        client = client_for(dentist)
        client_for(admin_user).delete(f'/v1/users/{dentist.pk}/')

        assert client.get('/v1/users/').status_code == 401

    def test_admin_cannot_deactivate_self(self, client_for, admin_user):
        response = client_for(admin_user).delete(f'/v1/users/{admin_user.pk}/')

        assert response.status_code == 403
        assert response.data['error']['ability'] == 'delete_users'


@pytest.mark.django_db
class TestDirectGrantEndpoints:

    def test_grant_list_and_revoke(self, client_for, catalog, admin_user, assistant):
        client = client_for(admin_user)
        url = f'/v1/users/{assistant.pk}/permissions/'

        response = client.post(url, {'permission': 'create_patients', 'reason': 'Front desk cover'})
        assert response.status_code == 201
        assert response.data['granted_by'] == admin_user.email

        assert client.post(url, {'permission': 'create_patients'}).status_code == 200
        assert [row['permission'] for row in client.get(url).data] == ['create_patients']

        assert client.delete(f'{url}create_patients/').status_code == 204
        assert client.delete(f'{url}create_patients/').status_code == 404
        assert not UserPermission.objects.for_user(assistant).exists()

    def test_unknown_permission_rejected(self, client_for, catalog, admin_user, assistant):
        response = client_for(admin_user).post(
            f'/v1/users/{assistant.pk}/permissions/', {'permission': 'launch_rockets'},
        )
        assert response.status_code == 400

    def test_grants_are_admin_only(self, client_for, catalog, dentist, assistant):
        response = client_for(dentist).post(
            f'/v1/users/{assistant.pk}/permissions/', {'permission': 'create_patients'},
        )

        assert response.status_code == 403
        assert response.data['error']['ability'] == 'grant_users'

    def test_cannot_grant_to_self_without_admin(self, client_for, catalog, dentist):
        response = client_for(dentist).post(
            f'/v1/users/{dentist.pk}/permissions/', {'permission': 'delete_patients'},
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestCatalogEndpoints:

    def test_permission_catalog(self, client_for, catalog, assistant):
        response = client_for(assistant).get('/v1/permissions')

        assert response.status_code == 200
        assert response.data['count'] == 12
        assert 'view_patients' in {row['name'] for row in response.data['permissions']}

    def test_role_permissions(self, client_for, catalog, assistant):
        response = client_for(assistant).get('/v1/roles/hygienist/permissions')

        assert response.status_code == 200
        assert response.data['permissions'] == ['update_patients', 'view_patients', 'view_users']
        assert response.data['all_permissions'] is False

    def test_admin_role_has_every_ability(self, client_for, catalog, assistant):
        response = client_for(assistant).get('/v1/roles/admin/permissions')

        assert response.data['all_permissions'] is True
        assert response.data['permissions'] == []

    def test_unknown_role(self, client_for, catalog, assistant):
        assert client_for(assistant).get('/v1/roles/janitor/permissions').status_code == 404
