"""
Authorization engine.

``can(principal, ability, resource=None)`` answers whether a principal may
perform an ability, optionally against a model class or instance. Rules run
in a fixed order:

1. anonymous or deactivated principals are denied
2. nobody may delete or force-delete their own principal record
3. only platform principals (no tenant) may create, delete or restore tenants
4. admins are allowed everything else, catalog or not
5. the resource policy decides from the principal's effective permissions

Abilities are either full permission names (``update_patients``) or a bare
action (``update``) qualified by the resource's declared prefix.
"""
import logging
from django.contrib.auth import get_user_model
from apps.core.exceptions import AuthorizationError
from apps.core.logging import SecurityLogger
from apps.rbac import capabilities, policies
from apps.rbac.policies import Decision
from apps.rbac.services import RBACService

logger = logging.getLogger(__name__)

DESTRUCTIVE_ACTIONS = frozenset({'delete', policies.FORCE_DELETE})
PLATFORM_ONLY_TENANT_ACTIONS = frozenset({'create', 'delete', policies.RESTORE, policies.FORCE_DELETE})


def parse_ability(ability, resource=None):
    """
    Split ``ability`` into ``(action, declaration)``.

    The declaration is None when the ability names no registered type; such
    abilities are checked verbatim against the permission set.
    """
    if resource is not None:
        declaration = capabilities.registry.declaration_for(resource)
        if declaration is not None:
            suffix = f"_{declaration.prefix}"
            if ability.endswith(suffix) and len(ability) > len(suffix):
                return ability[:-len(suffix)], declaration
            if '_' not in ability or ability in (policies.RESTORE, policies.FORCE_DELETE):
                return ability, declaration

    best = None
    for declaration in capabilities.registry.discover():
        suffix = f"_{declaration.prefix}"
        if ability.endswith(suffix) and len(ability) > len(suffix):
            if best is None or len(declaration.prefix) > len(best.prefix):
                best = declaration
    if best is not None:
        return ability[:-len(best.prefix) - 1], best
    return ability, None


def _is_instance(resource):
    return resource is not None and not isinstance(resource, type)


def evaluate(principal, ability, resource=None) -> Decision:
    """Return the decision for ``ability`` without raising or logging."""
    if principal is None or not getattr(principal, 'is_authenticated', False):
        return policies.DENY_UNAUTHENTICATED
    if not principal.is_active:
        return policies.DENY_UNAUTHENTICATED

    action, declaration = parse_ability(ability, resource)
    model = declaration.model if declaration is not None else None
    instance = resource if _is_instance(resource) else None

    if (
        instance is not None
        and isinstance(instance, get_user_model())
        and instance.pk == principal.pk
        and action in DESTRUCTIVE_ACTIONS
    ):
        return policies.DENY_SELF_PROTECTION

    if model is not None and model._meta.label == 'tenants.Tenant':
        if action in PLATFORM_ONLY_TENANT_ACTIONS and principal.tenant_id is not None:
            return policies.DENY_PLATFORM_ONLY

    if principal.is_admin():
        return policies.ALLOW_ADMIN

    permissions = RBACService.resolve_permissions(principal)
    if declaration is None:
        if ability in permissions:
            return policies.ALLOW_PERMISSION
        return policies.DENY_MISSING_PERMISSION

    policy = policies.policy_for(model)
    return policy.check(principal, action, declaration.prefix, instance, permissions)


def check(principal, ability, resource=None) -> Decision:
    """Evaluate ``ability`` and record denials on the security logger."""
    decision = evaluate(principal, ability, resource)
    if not decision.allowed and principal is not None and getattr(principal, 'is_authenticated', False):
        if decision.reason == policies.DENY_CROSS_TENANT.reason:
            SecurityLogger.log_cross_tenant_access(principal, ability, resource)
        else:
            SecurityLogger.log_authorization_denied(
                principal, ability, decision.reason, resource=resource
            )
    return decision


def can(principal, ability, resource=None) -> bool:
    """True when ``principal`` may perform ``ability`` on ``resource``."""
    return check(principal, ability, resource).allowed


def cannot(principal, ability, resource=None) -> bool:
    return not can(principal, ability, resource)


def authorize(principal, ability, resource=None):
    """Raise ``AuthorizationError`` unless ``principal`` may perform ``ability``."""
    if not can(principal, ability, resource):
        raise AuthorizationError(ability=ability)
