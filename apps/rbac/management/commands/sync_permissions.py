"""
Management command to sync the permission catalog with capability declarations.

Idempotent: a second run against an unchanged codebase creates nothing.
"""
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError
from apps.core.exceptions import ConfigurationError
from apps.rbac import capabilities
from apps.rbac.sync import declared_names, sync


class Command(BaseCommand):
    help = 'Sync permissions from registered capability declarations (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without writing anything',
        )
        parser.add_argument(
            '--prune',
            '--clean',
            dest='prune',
            action='store_true',
            help='Remove catalog entries that no declaration accounts for',
        )
        parser.add_argument(
            '--guard',
            default=settings.PERMISSION_GUARD,
            help='Permission guard to sync (default: %(default)s)',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        prune = options['prune']
        guard = options['guard']

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN: no changes will be written\n'))

        try:
            declarations = capabilities.discover()
        except ConfigurationError as exc:
            raise CommandError(f"Invalid capability declaration: {exc.message}")

        if not declarations:
            self.stdout.write(self.style.WARNING('No permission-declaring types are registered'))
            return

        self.stdout.write(f'Syncing permissions for guard "{guard}"...\n')
        for declaration in declarations:
            self.stdout.write(
                f'  {declaration.type_name:<20} {", ".join(declaration.permissions)}'
            )

        try:
            report = sync(declarations, prune=prune, dry_run=dry_run, guard=guard)
        except DatabaseError as exc:
            raise CommandError(
                f"Permission sync failed after attempting {len(declared_names(declarations))} "
                f"declared permissions for guard \"{guard}\": {exc}"
            )

        verb = 'Would create' if dry_run else 'Created'
        for name in report.created:
            self.stdout.write(self.style.SUCCESS(f'  + {verb}: {name}'))
        for name in report.removed:
            self.stdout.write(self.style.ERROR(f'  - {"Would remove" if dry_run else "Removed"}: {name}'))

        self.stdout.write('\n' + '=' * 50)
        self.stdout.write(f'Created:          {len(report.created)}')
        self.stdout.write(f'Already existing: {len(report.existing)}')
        if prune:
            self.stdout.write(f'Removed:          {len(report.removed)}')
        self.stdout.write(
            f'Role grants:      +{report.role_grants_added} / -{report.role_grants_removed}'
        )
        self.stdout.write(f'Total:            {report.total}')
        self.stdout.write('=' * 50)

        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run complete; nothing was written'))
        else:
            self.stdout.write(self.style.SUCCESS('✓ Permissions synced; permission cache cleared'))
