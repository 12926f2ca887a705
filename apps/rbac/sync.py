"""
Permission catalog synchronization.

Brings the persisted catalog in line with the capability declarations:
missing permissions are created, existing ones are left alone, and with
``prune`` entries no declaration accounts for are removed. Role defaults are
re-materialized against the resulting catalog. The permission cache is
invalidated only after the transaction commits.
"""
import logging
from dataclasses import dataclass, field
from typing import List
from django.conf import settings
from django.db import transaction
from apps.rbac import capabilities
from apps.rbac.models import Permission, RolePermission
from apps.rbac.roles import ROLE_DEFAULT_PERMISSIONS, UserRole
from apps.rbac.services import RBACService

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    role_grants_added: int = 0
    role_grants_removed: int = 0
    dry_run: bool = False

    @property
    def total(self):
        return len(self.created) + len(self.existing)

    @property
    def changed(self):
        return bool(self.created or self.removed or self.role_grants_added or self.role_grants_removed)


def declared_names(declarations):
    """Permission names in declaration order, without duplicates."""
    names = []
    seen = set()
    for declaration in declarations:
        for name in declaration.permissions:
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names


def sync(declarations=None, prune=False, dry_run=False, guard=None) -> SyncReport:
    """
    Reconcile the catalog for ``guard`` with ``declarations``.

    ``declarations`` defaults to every registered capability. A dry run makes
    the same decisions and reports them without writing.
    """
    if declarations is None:
        declarations = capabilities.discover()
    guard = guard or settings.PERMISSION_GUARD
    names = declared_names(declarations)
    report = SyncReport(dry_run=dry_run)

    with transaction.atomic():
        present = Permission.objects.names(guard)

        for name in names:
            if name in present:
                report.existing.append(name)
                continue
            if dry_run:
                report.created.append(name)
                continue
            _permission, created = Permission.objects.ensure(name, guard)
            if created:
                report.created.append(name)
            else:
                report.existing.append(name)

        if prune:
            stale = Permission.objects_with_deleted.filter(guard=guard).exclude(name__in=names)
            report.removed = sorted(stale.values_list('name', flat=True).distinct())
            if report.removed and not dry_run:
                stale.hard_delete()

        if dry_run:
            catalog = (present | set(names)) - set(report.removed)
        else:
            catalog = Permission.objects.names(guard)
        added, removed = materialize_role_defaults(catalog, guard, dry_run=dry_run)
        report.role_grants_added = added
        report.role_grants_removed = removed

        if not dry_run:
            transaction.on_commit(RBACService.invalidate_all)

    logger.info(
        f"Permission sync ({guard}): {len(report.created)} created, "
        f"{len(report.existing)} existing, {len(report.removed)} removed"
        f"{' [dry run]' if dry_run else ''}"
    )
    return report


def materialize_role_defaults(catalog, guard, dry_run=False):
    """
    Make each non-admin role hold exactly its defaults that exist in ``catalog``.

    Returns ``(added, removed)`` grant counts.
    """
    added = removed = 0
    for role in UserRole.materialized():
        wanted = set(ROLE_DEFAULT_PERMISSIONS.get(role, [])) & catalog
        current = RolePermission.objects.permission_names(role, guard)

        missing = sorted(wanted - current)
        extra = sorted(current - wanted)
        added += len(missing)
        removed += len(extra)
        if dry_run:
            continue

        for name in missing:
            permission = Permission.objects.get(name=name, guard=guard)
            RolePermission.objects.grant_permission(role, permission)
        if extra:
            RolePermission.objects.filter(
                role=role, permission__guard=guard, permission__name__in=extra
            ).delete()
    return added, removed
