"""
Tests for permission catalog sync and the sync_permissions command.
"""
from io import StringIO
from unittest.mock import patch
import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from apps.core.exceptions import ConfigurationError
from apps.patients.models import Patient
from apps.rbac import capabilities
from apps.rbac.models import Permission, RolePermission
from apps.rbac.roles import ROLE_DEFAULT_PERMISSIONS, UserRole
from apps.rbac.services import RBACService
from apps.rbac.sync import sync

ALL_PERMISSIONS = {
    f"{action}_{prefix}"
    for prefix in ('patients', 'tenants', 'users')
    for action in ('view', 'create', 'update', 'delete')
}
DEFAULT_GRANT_COUNT = sum(len(names) for names in ROLE_DEFAULT_PERMISSIONS.values())


@pytest.mark.django_db
class TestSync:
    """Reconciling the catalog with the registered declarations."""

    def test_first_run_creates_catalog(self):
        report = sync()

        assert set(report.created) == ALL_PERMISSIONS
        assert report.existing == []
        assert report.total == 12
        assert Permission.objects.names('web') == ALL_PERMISSIONS

    def test_rerun_is_idempotent(self):
        sync()
        report = sync()

        assert report.created == []
        assert set(report.existing) == ALL_PERMISSIONS
        assert not report.changed
        assert Permission.objects.count() == 12
        assert RolePermission.objects.count() == DEFAULT_GRANT_COUNT

    def test_single_declaration(self):
        declaration = capabilities.registry.declaration_for(Patient)

        first = sync([declaration])
        second = sync([declaration])

        assert Permission.objects.names('web') == {
            'view_patients', 'create_patients', 'update_patients', 'delete_patients',
        }
        assert len(first.created) == 4
        assert second.created == []
        assert Permission.objects.count() == 4

    def test_role_defaults_limited_to_catalog(self):
        sync([capabilities.registry.declaration_for(Patient)])

        assert RBACService.role_permissions(UserRole.DENTIST) == {
            'view_patients', 'create_patients', 'update_patients',
        }

    def test_admin_never_materialized(self):
        sync()
        assert not RolePermission.objects.for_role(UserRole.ADMIN).exists()

    def test_role_defaults_rematerialized(self):
        sync()
        delete_patients = Permission.objects.get(name='delete_patients')
        RolePermission.objects.grant_permission(UserRole.ASSISTANT, delete_patients)
        RolePermission.objects.filter(role=UserRole.DENTIST, permission__name='view_users').delete()

        report = sync()

        assert report.role_grants_added == 1
        assert report.role_grants_removed == 1
        assert RBACService.role_permissions(UserRole.ASSISTANT) == {'view_patients'}
        assert 'view_users' in RBACService.role_permissions(UserRole.DENTIST)

    def test_stale_entries_kept_without_prune(self):
        Permission.objects.create(name='export_reports', guard='web')

        report = sync()

        assert report.removed == []
        assert Permission.objects.filter(name='export_reports').exists()

    def test_prune_removes_stale_entries(self):
        Permission.objects.create(name='export_reports', guard='web')
        Permission.objects.create(name='view_invoices', guard='web').delete()

        report = sync(prune=True)

        assert report.removed == ['export_reports', 'view_invoices']
        assert not Permission.objects_with_deleted.filter(name__in=report.removed).exists()
        assert Permission.objects.names('web') == ALL_PERMISSIONS

    def test_prune_leaves_other_guards(self):
        Permission.objects.create(name='export_reports', guard='api')
        sync(prune=True)
        assert Permission.objects.filter(name='export_reports', guard='api').exists()

    def test_dry_run_writes_nothing(self):
        Permission.objects.create(name='export_reports', guard='web')

        report = sync(prune=True, dry_run=True)

        assert report.dry_run
        assert set(report.created) == ALL_PERMISSIONS
        assert report.removed == ['export_reports']
        assert report.role_grants_added == DEFAULT_GRANT_COUNT
        assert Permission.objects.names('web') == {'export_reports'}
        assert not RolePermission.objects.exists()

    def test_soft_deleted_entry_restored(self):
        sync()
        Permission.objects.get(name='view_patients').delete()

        report = sync()

        assert report.created == ['view_patients']
        assert Permission.objects.filter(name='view_patients').exists()
        assert Permission.objects_with_deleted.filter(name='view_patients').count() == 1

    def test_guard_namespaces(self):
        sync(guard='api')

        assert Permission.objects.names('api') == ALL_PERMISSIONS
        assert Permission.objects.names('web') == set()
        assert RBACService.role_permissions(UserRole.ASSISTANT, guard='api') == {'view_patients'}

    def test_cache_invalidated_after_commit(self, django_capture_on_commit_callbacks):
        version = RBACService.catalog_version()

        with django_capture_on_commit_callbacks(execute=True):
            sync()

        assert RBACService.catalog_version() > version

    def test_dry_run_leaves_cache_alone(self, django_capture_on_commit_callbacks):
        version = RBACService.catalog_version()

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            sync(dry_run=True)

        assert callbacks == []
        assert RBACService.catalog_version() == version


@pytest.mark.django_db
class TestSyncPermissionsCommand:

    def run(self, *args):
        out = StringIO()
        call_command('sync_permissions', *args, stdout=out)
        return out.getvalue()

    def test_creates_then_reports_nothing_new(self):
        first = self.run()
        second = self.run()

        assert 'Created:          12' in first
        assert '+ Created: view_patients' in first
        assert 'Created:          0' in second
        assert 'Already existing: 12' in second
        assert Permission.objects.count() == 12

    def test_dry_run(self):
        output = self.run('--dry-run')

        assert 'DRY RUN' in output
        assert 'Would create: view_patients' in output
        assert not Permission.objects.exists()

    @pytest.mark.parametrize('flag', ['--prune', '--clean'])
    def test_prune_flags(self, flag):
        Permission.objects.create(name='export_reports', guard='web')

        output = self.run(flag)

        assert 'Removed: export_reports' in output
        assert not Permission.objects.filter(name='export_reports').exists()

    def test_guard_option(self):
        self.run('--guard', 'api')
        assert Permission.objects.names('api') == ALL_PERMISSIONS

    def test_malformed_declaration_is_command_error(self):
        with patch('apps.rbac.capabilities.discover', side_effect=ConfigurationError('bad prefix')):
            with pytest.raises(CommandError, match='bad prefix'):
                self.run()
        assert not Permission.objects.exists()

    def test_database_error_reports_attempted_count(self):
        with patch(
            'apps.rbac.management.commands.sync_permissions.sync',
            side_effect=DatabaseError('relation "rbac_permission" does not exist'),
        ):
            with pytest.raises(CommandError) as excinfo:
                self.run()

        message = str(excinfo.value)
        assert 'after attempting 12 declared permissions for guard "web"' in message
        assert 'rbac_permission' in message
