"""
Resource policies.

A policy decides instance-level abilities once the engine has ruled out the
hard denies and the admin short-circuit. Every permission-declaring model gets
``TenantOwnedPolicy`` unless a more specific policy is registered for it.
"""
from collections import namedtuple

Decision = namedtuple('Decision', ['allowed', 'reason'])

# Reasons are stable strings; they end up in security logs and tests.
ALLOW_ADMIN = Decision(True, 'admin')
ALLOW_PERMISSION = Decision(True, 'permission')
ALLOW_SELF = Decision(True, 'self')
DENY_UNAUTHENTICATED = Decision(False, 'unauthenticated')
DENY_SELF_PROTECTION = Decision(False, 'self_protection')
DENY_PLATFORM_ONLY = Decision(False, 'platform_only')
DENY_ADMIN_ONLY = Decision(False, 'admin_only')
DENY_MISSING_PERMISSION = Decision(False, 'missing_permission')
DENY_CROSS_TENANT = Decision(False, 'cross_tenant')

RESTORE = 'restore'
FORCE_DELETE = 'force_delete'


def permission_name(action, prefix):
    """Catalog permission backing ``action``; restoring needs delete rights."""
    if action == RESTORE:
        action = 'delete'
    return f"{action}_{prefix}"


class TenantOwnedPolicy:
    """Permission check plus same-tenant ownership for instances."""

    def check(self, principal, action, prefix, instance, permissions):
        if instance is not None and not self.owns(principal, instance):
            return DENY_CROSS_TENANT
        if action == FORCE_DELETE:
            return DENY_ADMIN_ONLY
        if permission_name(action, prefix) not in permissions:
            return DENY_MISSING_PERMISSION
        return ALLOW_PERMISSION

    def owns(self, principal, instance):
        if not hasattr(instance, 'owning_tenant_id'):
            return True
        return principal.tenant_id == instance.owning_tenant_id


class UserPolicy(TenantOwnedPolicy):
    """Principals may always view and update their own record."""

    REFLEXIVE_ACTIONS = ('view', 'update')

    def check(self, principal, action, prefix, instance, permissions):
        if instance is not None and instance.pk == principal.pk and action in self.REFLEXIVE_ACTIONS:
            return ALLOW_SELF
        return super().check(principal, action, prefix, instance, permissions)


class TenantPolicy(TenantOwnedPolicy):
    """
    A tenant-bound principal only ever sees and edits its own tenant.

    Platform principals have no membership to check; their permissions decide.
    """

    MEMBER_ACTIONS = ('view', 'update')

    def owns(self, principal, instance):
        return principal.tenant_id is None or principal.tenant_id == instance.pk

    def check(self, principal, action, prefix, instance, permissions):
        if instance is not None and action in self.MEMBER_ACTIONS and not self.owns(principal, instance):
            return DENY_CROSS_TENANT
        if action == FORCE_DELETE:
            return DENY_ADMIN_ONLY
        if permission_name(action, prefix) not in permissions:
            return DENY_MISSING_PERMISSION
        return ALLOW_PERMISSION


class PolicyRegistry:

    def __init__(self, default=None):
        self._policies = {}
        self.default = default or TenantOwnedPolicy()

    def register(self, model, policy=None):
        """Attach ``policy`` to ``model``; usable as a class decorator on the policy."""
        if policy is not None:
            self._policies[model] = policy
            return policy

        def decorator(policy_class):
            self._policies[model] = policy_class()
            return policy_class
        return decorator

    def policy_for(self, model):
        return self._policies.get(model, self.default)


registry = PolicyRegistry()
register = registry.register
policy_for = registry.policy_for
