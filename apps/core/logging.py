"""
Structured logging helpers.

- PIIMasker: masks patient and staff identifiers before they reach a log sink
- JSONFormatter: one JSON object per record, with request/tenant correlation
- SecurityLogger: security events (denials, scope bypasses, resolution failures)
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """Mask personal data in log messages and ``extra`` payloads."""

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(token|secret|password|authorization)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE,
    )

    SENSITIVE_FIELDS = {
        'phone', 'mobile', 'email', 'password', 'password_hash',
        'token', 'secret', 'authorization',
        'date_of_birth', 'license_number', 'insurance_number', 'medical_notes',
    }

    @classmethod
    def mask_email(cls, text):
        def _mask(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"
        return cls.EMAIL_PATTERN.sub(_mask, text)

    @classmethod
    def mask_text(cls, text):
        if not isinstance(text, str):
            return text
        text = cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)
        text = cls.mask_email(text)
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive keys and values."""
        if not isinstance(data, dict):
            return data
        masked = {}
        for key, value in data.items():
            if any(field in str(key).lower() for field in cls.SENSITIVE_FIELDS):
                masked[key] = '********' if value and not isinstance(value, (dict, list)) else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)
        return masked


# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {
    'message', 'asctime', 'request_id', 'tenant_id',
}


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    ``request_id`` and ``tenant_id`` are promoted to top-level keys; other
    ``extra`` values are masked and copied when they are JSON-serializable.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if getattr(record, 'request_id', None):
            log_data['request_id'] = record.request_id
        if getattr(record, 'tenant_id', None):
            log_data['tenant_id'] = str(record.tenant_id)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            masked = PIIMasker.mask_dict(value) if isinstance(value, dict) else PIIMasker.mask_text(value)
            try:
                json.dumps(masked)
                log_data[key] = masked
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Security event logging on the ``security`` logger.

    Critical events are also forwarded to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'cross_tenant_access',
    }

    ROUTINE_SCOPE_BYPASSES = {
        'authentication',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_time': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_scope_bypass(model, reason: str):
        """Routine bypasses such as per-request principal lookups log at debug."""
        SecurityLogger.log_event(
            'tenant_scope_bypassed',
            level='debug' if reason in SecurityLogger.ROUTINE_SCOPE_BYPASSES else 'info',
            model=model.__name__,
            reason=reason,
        )

    @staticmethod
    def log_authorization_denied(principal, ability: str, reason: str, resource=None):
        is_instance = resource is not None and not isinstance(resource, type)
        SecurityLogger.log_event(
            'authorization_denied',
            level='warning',
            user_id=str(principal.pk) if principal is not None and principal.pk else None,
            principal_tenant_id=str(principal.tenant_id) if getattr(principal, 'tenant_id', None) else None,
            ability=ability,
            reason=reason,
            resource_type=(resource.__class__ if is_instance else resource).__name__ if resource is not None else None,
            resource_id=str(resource.pk) if is_instance else None,
        )

    @staticmethod
    def log_cross_tenant_access(principal, ability: str, resource):
        """A principal asked for a resource owned by another tenant."""
        SecurityLogger.log_event(
            'cross_tenant_access',
            level='error',
            user_id=str(principal.pk),
            principal_tenant_id=str(principal.tenant_id) if principal.tenant_id else None,
            ability=ability,
            resource_type=resource.__class__.__name__,
            resource_id=str(resource.pk),
        )

    @staticmethod
    def log_tenant_resolution_failed(code: str, path: str, ip_address: str = None, **context):
        SecurityLogger.log_event(
            'tenant_resolution_failed',
            level='warning',
            code=code,
            path=path,
            ip_address=ip_address,
            **context,
        )
