"""
RBAC and authentication services.

- RBACService: effective permission sets (cached), direct grants, cache invalidation
- AuthService: JWT issuance and validation for principals
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional, Set
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
import jwt

from apps.rbac.models import Permission, RolePermission, User, UserPermission
from apps.rbac.roles import UserRole

logger = logging.getLogger(__name__)


class RBACService:
    """
    Effective permission resolution.

    A principal's permissions are the default permissions of its role plus
    its direct grants. Results are cached per user under a key that embeds
    the catalog version, so bumping the version invalidates every entry at
    once without scanning keys.
    """

    PERMISSION_CACHE_TTL = 300  # 5 minutes
    CATALOG_VERSION_KEY = 'permissions:catalog_version'

    @classmethod
    def catalog_version(cls) -> int:
        return cache.get_or_set(cls.CATALOG_VERSION_KEY, 1, None)

    @classmethod
    def _user_cache_key(cls, user_id) -> str:
        return f"permissions:v{cls.catalog_version()}:user:{user_id}"

    @classmethod
    def resolve_permissions(cls, user: User, guard: Optional[str] = None) -> Set[str]:
        """Return the permission names held by ``user`` for ``guard``."""
        guard = guard or settings.PERMISSION_GUARD
        cache_key = f"{cls._user_cache_key(user.pk)}:{guard}"
        cached = cache.get(cache_key)
        if cached is not None:
            return set(cached)

        permissions = set()
        if user.primary_role != UserRole.ADMIN:
            permissions |= RolePermission.objects.permission_names(user.primary_role, guard)
        permissions |= UserPermission.objects.permission_names(user, guard)

        cache.set(cache_key, sorted(permissions), cls.PERMISSION_CACHE_TTL)
        return permissions

    @classmethod
    def role_permissions(cls, role, guard: Optional[str] = None) -> Set[str]:
        return RolePermission.objects.permission_names(role, guard or settings.PERMISSION_GUARD)

    @classmethod
    def invalidate_user_cache(cls, user_id):
        """Drop every cached permission set for one principal."""
        prefix = cls._user_cache_key(user_id)
        cache.delete_many([f"{prefix}:{guard}" for guard in settings.PERMISSION_GUARDS])

    @classmethod
    def invalidate_all(cls):
        """Invalidate every cached permission set by bumping the catalog version."""
        try:
            version = cache.incr(cls.CATALOG_VERSION_KEY)
        except ValueError:
            version = 2
            cache.set(cls.CATALOG_VERSION_KEY, version, None)
        logger.info(f"Permission cache invalidated (catalog version {version})")

    @classmethod
    @transaction.atomic
    def grant_permission(cls, user: User, permission_name: str, reason: str = '',
                         granted_by: Optional[User] = None, guard: Optional[str] = None):
        """Grant a catalog permission directly to ``user``."""
        guard = guard or settings.PERMISSION_GUARD
        try:
            permission = Permission.objects.get(name=permission_name, guard=guard)
        except Permission.DoesNotExist:
            raise ValueError(f"Permission '{permission_name}' ({guard}) is not in the catalog")

        grant, created = UserPermission.objects.grant_permission(
            user, permission, reason=reason, granted_by=granted_by
        )
        transaction.on_commit(lambda: cls.invalidate_user_cache(user.pk))
        logger.info(
            f"Permission {permission_name} granted to user {user.pk}",
            extra={'tenant_id': str(user.tenant_id) if user.tenant_id else None},
        )
        return grant, created

    @classmethod
    @transaction.atomic
    def revoke_permission(cls, user: User, permission_name: str, guard: Optional[str] = None):
        guard = guard or settings.PERMISSION_GUARD
        deleted, _ = UserPermission.objects.filter(
            user=user, permission__name=permission_name, permission__guard=guard
        ).delete()
        transaction.on_commit(lambda: cls.invalidate_user_cache(user.pk))
        return deleted > 0


class AuthService:
    """JWT authentication for principals."""

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.pk),
            'email': user.email,
            'tenant_id': str(user.tenant_id) if user.tenant_id else None,
            'exp': now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
            'iat': now,
        }
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """Decoded payload, or None when the token is expired or invalid."""
        try:
            return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.info("Expired JWT presented")
            return None
        except jwt.InvalidTokenError:
            logger.info("Invalid JWT presented")
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        return cls.user_for_claims(cls.validate_jwt(token))

    @classmethod
    def user_for_claims(cls, payload: Optional[Dict[str, Any]]) -> Optional[User]:
        """
        Active principal named by decoded token claims.

        The ``tenant_id`` claim must still match the principal's tenant.
        """
        if not payload or not payload.get('user_id'):
            return None
        user = (
            User.objects.without_tenant_scope(reason='authentication')
            .filter(pk=payload['user_id'], is_active=True)
            .first()
        )
        if user is None:
            return None
        claimed_tenant = payload.get('tenant_id')
        if claimed_tenant != (str(user.tenant_id) if user.tenant_id else None):
            logger.warning(f"Token tenant claim does not match principal {user.pk}")
            return None
        return user

    @classmethod
    def login(cls, email: str, password: str, ip_address: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Check credentials and return ``{'user', 'token'}``, or None."""
        user = User.objects.by_email(email)
        if user is None or not user.is_active or not user.check_password(password):
            return None
        user.update_last_login(ip_address)
        return {'user': user, 'token': cls.generate_jwt(user)}
