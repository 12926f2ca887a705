"""
RBAC models.

- User: principal; bound to at most one tenant (platform operators have none)
- Permission: global catalog of ``{action}_{resource}`` names per guard
- RolePermission: materialized default grants for each non-admin role
- UserPermission: direct grants to a single principal
"""
import logging
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet
from apps.core.scoping import TenantOwnedModel, TenantScopedManager, TenantScopedQuerySet
from apps.rbac import capabilities
from apps.rbac.roles import UserRole

logger = logging.getLogger(__name__)


def normalize_email(email):
    """Lowercase the domain part of an email address."""
    email = (email or '').strip()
    name, sep, domain = email.rpartition('@')
    if not sep:
        return email
    return f"{name}@{domain.lower()}"


class UserQuerySet(TenantScopedQuerySet):

    def active(self):
        return self.filter(is_active=True)

    def create_user(self, email, password=None, **extra_fields):
        """Create a principal with a hashed password in the bound tenant."""
        if not email:
            raise ValueError('Email address is required')
        extra_fields.setdefault('is_active', True)
        values = self._stamp_tenant({'email': normalize_email(email), **extra_fields})
        user = self.model(**values)
        user.set_password(password)
        user.save(force_insert=True, using=self.db)
        return user


class UserManager(TenantScopedManager.from_queryset(UserQuerySet)):
    """
    Manager for principals.

    Authentication looks principals up by email across every tenant, so the
    natural-key lookup is an explicit scope bypass.
    """

    def get_by_natural_key(self, email):
        return self.without_tenant_scope(reason='authentication').get(email=normalize_email(email))

    def by_email(self, email):
        return self.without_tenant_scope(reason='authentication').filter(email=normalize_email(email)).first()


@capabilities.register
class User(TenantOwnedModel):
    """
    A principal acting on the platform.

    ``tenant`` is null only for platform operators. Principals are
    deactivated rather than deleted so their audit history survives.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users',
        help_text="Owning tenant; null for platform operators"
    )
    email = models.EmailField(unique=True, help_text="Login email (unique globally)")
    password_hash = models.CharField(max_length=255, db_column='password_hash')

    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    title = models.CharField(max_length=20, blank=True, default='')
    primary_role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.ASSISTANT,
        db_index=True,
    )
    phone = models.CharField(max_length=50, blank=True, default='')
    license_number = models.CharField(max_length=100, blank=True, default='')
    specialization = models.CharField(max_length=100, blank=True, default='')

    is_active = models.BooleanField(default=True, db_index=True)
    last_login_at = models.DateTimeField(null=True, blank=True)
    last_login_ip = models.GenericIPAddressField(null=True, blank=True)
    preferences = models.JSONField(default=dict, blank=True)

    direct_permissions = models.ManyToManyField(
        'rbac.Permission',
        through='rbac.UserPermission',
        through_fields=('user', 'permission'),
        related_name='direct_users',
        blank=True,
    )

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta(TenantOwnedModel.Meta):
        db_table = 'users'
        indexes = [
            models.Index(fields=['tenant', 'primary_role'], name='users_tenant_role_idx'),
            models.Index(fields=['tenant', 'is_active'], name='users_tenant_active_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def get_username(self):
        return self.email

    def natural_key(self):
        return (self.email,)

    @property
    def role(self):
        return UserRole(self.primary_role)

    @property
    def full_name(self):
        name = f"{self.title} {self.first_name} {self.last_name}".strip()
        return ' '.join(name.split()) or self.email

    def get_full_name(self):
        return self.full_name

    def is_admin(self):
        return self.role.is_admin()

    def is_provider(self):
        return self.role.is_provider()

    def is_platform_user(self):
        return self.tenant_id is None

    def belongs_to_tenant(self, tenant_id):
        return self.tenant_id is not None and self.tenant_id == tenant_id

    def update_last_login(self, ip_address=None):
        self.last_login_at = timezone.now()
        self.last_login_ip = ip_address
        self.save(update_fields=['last_login_at', 'last_login_ip', 'updated_at'])


class PermissionManager(BaseModelManager):
    """Manager for the permission catalog."""

    def for_guard(self, guard):
        return self.filter(guard=guard)

    def names(self, guard):
        return set(self.filter(guard=guard).values_list('name', flat=True))

    def ensure(self, name, guard):
        """
        Create-if-absent on the natural key ``(name, guard)``.

        ``get_or_create`` already retries the lookup when a concurrent insert
        wins the race on the unique constraint. A soft-deleted entry is
        restored and reported as created.
        """
        permission, created = self.model.objects_with_deleted.get_or_create(name=name, guard=guard)
        if permission.deleted_at is not None:
            permission.restore()
            created = True
        return permission, created


class Permission(BaseModel):
    """
    Global permission catalog entry, shared across tenants.

    Entries are only ever added by the sync process, or removed by an
    explicit prune.
    """

    name = models.CharField(
        max_length=150,
        db_index=True,
        help_text="Permission name, e.g. 'view_patients'"
    )
    guard = models.CharField(
        max_length=50,
        default='web',
        help_text="Namespace the permission belongs to"
    )

    objects = PermissionManager.from_queryset(BaseModelQuerySet)()

    class Meta:
        db_table = 'permissions'
        ordering = ['guard', 'name']
        unique_together = [('name', 'guard')]

    def __str__(self):
        return f"{self.name} ({self.guard})"


class RolePermissionManager(models.Manager):
    """Manager for role-permission map rows."""

    def for_role(self, role):
        return self.filter(role=role)

    def permission_names(self, role, guard):
        return set(
            self.filter(role=role, permission__guard=guard, permission__deleted_at__isnull=True)
            .values_list('permission__name', flat=True)
        )

    def grant_permission(self, role, permission):
        return self.get_or_create(role=role, permission=permission)

    def revoke_permission(self, role, permission):
        return self.filter(role=role, permission=permission).delete()


class RolePermission(models.Model):
    """Default grant of a permission to a role; rows are removed outright."""

    role = models.CharField(max_length=20, choices=UserRole.choices, db_index=True)
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = RolePermissionManager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]
        ordering = ['role', 'permission']

    def __str__(self):
        return f"{self.role} -> {self.permission.name}"


class UserPermissionManager(models.Manager):
    """Manager for direct grants to principals."""

    def for_user(self, user):
        return self.filter(user=user)

    def permission_names(self, user, guard):
        return set(
            self.filter(user=user, permission__guard=guard, permission__deleted_at__isnull=True)
            .values_list('permission__name', flat=True)
        )

    def grant_permission(self, user, permission, reason='', granted_by=None):
        grant, created = self.get_or_create(
            user=user,
            permission=permission,
            defaults={'reason': reason, 'granted_by': granted_by},
        )
        return grant, created

    def revoke_permission(self, user, permission):
        return self.filter(user=user, permission=permission).delete()


class UserPermission(models.Model):
    """A permission granted directly to one principal."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='permission_grants',
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='user_grants',
    )
    reason = models.TextField(blank=True, default='')
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='granted_permissions',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserPermissionManager()

    class Meta:
        db_table = 'user_permissions'
        unique_together = [('user', 'permission')]

    def __str__(self):
        return f"{self.user_id} -> {self.permission.name}"
