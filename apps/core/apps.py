import logging
import re
import sys
from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
HEADER_NAME = re.compile(r'^[A-Za-z][A-Za-z0-9-]*$')
WEAK_SECRET_MARKERS = ('your-secret-key', 'change-me', 'insecure', '12345', 'password')


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate configuration when a serving process starts.

        Migrations and other management commands skip the checks so they can
        run with a partial configuration.
        """
        if not self._is_serving():
            return

        self._validate_jwt_configuration()
        self._validate_tenant_configuration()
        self._validate_security_settings()
        logger.info("✓ Startup configuration validated")

    @staticmethod
    def _is_serving():
        if 'gunicorn' in sys.argv[0]:
            return True
        return len(sys.argv) > 1 and sys.argv[1] in ('runserver', 'test')

    def _validate_jwt_configuration(self):
        """JWT_SECRET_KEY: set, long, varied and distinct from SECRET_KEY."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {KEY_HINT}")
        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long (got {len(jwt_secret)}). {KEY_HINT}"
            )
        if jwt_secret == getattr(settings, 'SECRET_KEY', None):
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy: {unique_chars} distinct characters, "
                f"at least 16 required. {KEY_HINT}"
            )

    def _validate_tenant_configuration(self):
        """Settings the tenant resolver and permission sync depend on."""
        app_domain = getattr(settings, 'APP_DOMAIN', '')
        if not app_domain or '://' in app_domain or '/' in app_domain:
            raise ImproperlyConfigured(
                f"APP_DOMAIN must be a bare domain such as 'clinics.example.com', got {app_domain!r}"
            )

        header = getattr(settings, 'TENANT_HEADER', 'X-Tenant-ID')
        if not HEADER_NAME.match(header or ''):
            raise ImproperlyConfigured(f"TENANT_HEADER is not a valid HTTP header name: {header!r}")

        if getattr(settings, 'TENANT_REQUEST_TIMEOUT_MS', 0) < 0:
            raise ImproperlyConfigured("TENANT_REQUEST_TIMEOUT_MS must be zero (disabled) or positive")

        guard = getattr(settings, 'PERMISSION_GUARD', 'web')
        guards = getattr(settings, 'PERMISSION_GUARDS', [guard])
        if guard not in guards:
            raise ImproperlyConfigured(
                f"PERMISSION_GUARD {guard!r} is not one of PERMISSION_GUARDS {list(guards)}"
            )

        if not getattr(settings, 'TENANT_HEADER_REQUIRES_MEMBERSHIP', False):
            logger.warning(
                f"⚠ {header} membership is only checked by API permission classes. "
                "Set TENANT_HEADER_REQUIRES_MEMBERSHIP=True to refuse foreign tenants in middleware."
            )

    def _validate_security_settings(self):
        secret_key = getattr(settings, 'SECRET_KEY', None)
        if not secret_key:
            raise ImproperlyConfigured(
                "SECRET_KEY must be set in environment variables. "
                "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""
            )
        if len(secret_key) < 50:
            logger.warning(f"⚠ SECRET_KEY is {len(secret_key)} characters; 50 or more is recommended.")

        if getattr(settings, 'DEBUG', False):
            return

        lowered = secret_key.lower()
        for marker in WEAK_SECRET_MARKERS:
            if marker in lowered:
                raise ImproperlyConfigured(
                    f"SECRET_KEY appears to be a default or weak value (contains '{marker}')."
                )
        if not getattr(settings, 'SECURE_SSL_REDIRECT', False):
            logger.warning("⚠ SECURE_SSL_REDIRECT is off outside DEBUG; HTTPS should be enforced.")
