"""
Django settings for the multi-tenant clinic platform.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
    DB_CONN_MAX_AGE=(int, 600),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env(
    'SECRET_KEY',
    default='dev-only-Zk8qR2vLx7mWn4tYc1bHf9sJd3gPa6eUo0iTr5yQw2zXv8nMl',
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

USE_X_FORWARDED_HOST = env.bool('USE_X_FORWARDED_HOST', default=False)
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'drf_spectacular',
    'corsheaders',

    # Platform apps
    'apps.core',
    'apps.tenants',
    'apps.rbac',
    'apps.patients',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'apps.core.middleware.RequestIDMiddleware',
    'apps.rbac.middleware.JWTAuthenticationMiddleware',
    'apps.tenants.middleware.TenantContextMiddleware',
    'apps.core.deadline.QueryDeadlineMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES['default']['CONN_MAX_AGE'] = env('DB_CONN_MAX_AGE')
DATABASES['default']['ATOMIC_REQUESTS'] = False

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
AUTH_USER_MODEL = 'rbac.User'

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.PBKDF2PasswordHasher',
    'django.contrib.auth.hashers.PBKDF2SHA1PasswordHasher',
    'django.contrib.auth.hashers.Argon2PasswordHasher',
    'django.contrib.auth.hashers.BCryptSHA256PasswordHasher',
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# ============================================================================
# TENANCY
# ============================================================================

# Tenant subdomains live under this domain, e.g. acme.clinics.example.com
APP_DOMAIN = env('APP_DOMAIN', default='localhost')

# Header naming the tenant explicitly; the value must be the tenant UUID
TENANT_HEADER = env('TENANT_HEADER', default='X-Tenant-ID')

# Per-request database budget in milliseconds; 0 disables the deadline
TENANT_REQUEST_TIMEOUT_MS = env.int('TENANT_REQUEST_TIMEOUT_MS', default=0)

# When enabled, an authenticated principal may only name its own tenant in the header
TENANT_HEADER_REQUIRES_MEMBERSHIP = env.bool('TENANT_HEADER_REQUIRES_MEMBERSHIP', default=False)

# ============================================================================
# PERMISSIONS
# ============================================================================

PERMISSION_GUARD = env('PERMISSION_GUARD', default='web')
PERMISSION_GUARDS = env.list('PERMISSION_GUARDS', default=['web', 'api'])

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.MiddlewareAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
    'UNAUTHENTICATED_USER': 'django.contrib.auth.models.AnonymousUser',
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}

# DRF Spectacular (OpenAPI)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Clinic Platform API',
    'DESCRIPTION': '''
Multi-tenant clinic management API.

## Authentication

Obtain a token from `POST /v1/auth/login` and send it on every request:

```
Authorization: Bearer <token>
```

## Tenant resolution

Each request is bound to exactly one clinic, resolved in this order:

1. `X-Tenant-ID` header carrying the clinic UUID
2. Subdomain of the application domain (`acme.<APP_DOMAIN>`)
3. The clinic the authenticated user belongs to

An unknown clinic yields `404 TENANT_NOT_FOUND`; a suspended or lapsed clinic
yields `403 TENANT_INACTIVE`.

## Authorization

Abilities are named `{action}_{resource}`, e.g. `view_patients`. Administrators
hold every ability. Records owned by another clinic are reported as not found.

## Error Responses

```json
{
  "error": {
    "code": "FORBIDDEN",
    "message": "You do not have permission to perform this action",
    "ability": "delete_patients"
  },
  "request_id": "..."
}
```
    ''',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'SCHEMA_PATH_PREFIX': r'/v1/',
    'COMPONENT_SPLIT_REQUEST': True,
    'SORT_OPERATIONS': False,
    'ENUM_NAME_OVERRIDES': {
        'SubscriptionStatusEnum': 'apps.tenants.models.SubscriptionStatus',
        'PatientStatusEnum': 'apps.patients.models.PatientStatus',
    },
    'APPEND_COMPONENTS': {
        'securitySchemes': {
            'JWTAuth': {
                'type': 'http',
                'scheme': 'bearer',
                'bearerFormat': 'JWT',
                'description': 'JWT token obtained from /v1/auth/login',
            },
            'TenantHeader': {
                'type': 'apiKey',
                'in': 'header',
                'name': 'X-Tenant-ID',
                'description': 'Clinic UUID; optional when the subdomain or the user identifies the clinic',
            },
        },
    },
    'SECURITY': [
        {'JWTAuth': []},
    ],
    'TAGS': [
        {'name': 'Authentication', 'description': 'Login and current user'},
        {'name': 'Tenants', 'description': 'The clinic bound to the request'},
        {'name': 'Platform - Tenants', 'description': 'Clinic directory for platform operators'},
        {'name': 'RBAC - Users', 'description': 'Clinic staff and their direct permission grants'},
        {'name': 'RBAC - Permissions', 'description': 'Permission catalog and role defaults'},
        {'name': 'Patients', 'description': 'Patient records'},
    ],
}

# ============================================================================
# SECURITY SETTINGS
# ============================================================================

SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=False)

if not DEBUG:
    # HSTS (HTTP Strict Transport Security)
    SECURE_HSTS_SECONDS = env.int('SECURE_HSTS_SECONDS', default=31536000)
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
    CSRF_COOKIE_SECURE = True
    CSRF_COOKIE_HTTPONLY = True
    CSRF_COOKIE_SAMESITE = 'Lax'
else:
    SECURE_HSTS_SECONDS = 0
    CSRF_COOKIE_SECURE = False

# Security Headers (All Environments)
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# CORS Configuration
CORS_ALLOW_ALL_ORIGINS = DEBUG

if not DEBUG:
    cors_origins = env.list('CORS_ALLOWED_ORIGINS', default=[])

    for origin in cors_origins:
        if not origin.startswith('https://'):
            raise environ.ImproperlyConfigured(
                f"CORS origin must use HTTPS in production: {origin}. "
                f"Update CORS_ALLOWED_ORIGINS in .env"
            )

    CORS_ALLOWED_ORIGINS = cors_origins
else:
    CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[])

CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'accept-encoding',
    'authorization',
    'content-type',
    'origin',
    'user-agent',
    'x-requested-with',
    'x-request-id',
    'x-tenant-id',
]
CORS_EXPOSE_HEADERS = ['x-request-id']

# Cache: Redis when configured, in-process memory otherwise
REDIS_URL = env('REDIS_URL', default=None)

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'SOCKET_CONNECT_TIMEOUT': 5,
                'SOCKET_TIMEOUT': 5,
                'CONNECTION_POOL_KWARGS': {
                    'max_connections': 50,
                    'retry_on_timeout': True,
                },
            },
            'KEY_PREFIX': 'clinic',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'clinic-default',
            'TIMEOUT': 300,
        }
    }

# Logging Configuration
LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            'format': '{levelname} {asctime} {name} [{request_id}] {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'filters': {
        'request_id': {
            '()': 'apps.core.middleware.LoggingFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['request_id'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# Sentry Configuration
SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default='development')
SENTRY_RELEASE = env('SENTRY_RELEASE', default=None)

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

# Subscription Configuration
DEFAULT_TRIAL_DAYS = env.int('DEFAULT_TRIAL_DAYS', default=14)

# JWT Authentication Configuration
# JWT_SECRET_KEY must differ from SECRET_KEY; the startup checks in
# apps.core.apps enforce its length and entropy.
JWT_SECRET_KEY = env(
    'JWT_SECRET_KEY',
    default='dev-jwt-Hq3Lr8Vx1Nc6Tb9Ws2Kd5Fm7Gp4Yz0Ej',
)
JWT_ALGORITHM = env('JWT_ALGORITHM', default='HS256')
JWT_EXPIRATION_HOURS = env.int('JWT_EXPIRATION_HOURS', default=24)
