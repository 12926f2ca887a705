"""
DRF permission class backed by the authorization engine.

Views declare the model they act on; the DRF action picks the ability:

    class PatientViewSet(viewsets.ModelViewSet):
        permission_classes = [HasAbility]
        ability_model = Patient

List and create are checked against the model class. Detail actions are
checked against the fetched instance, and an instance owned by another
tenant is reported as not found rather than forbidden.
"""
import logging
from rest_framework.permissions import BasePermission
from apps.core.exceptions import AuthorizationError, ResourceNotFound, TenantNotFound
from apps.core.logging import SecurityLogger
from apps.rbac import authorization, capabilities, policies

logger = logging.getLogger(__name__)

ACTION_ABILITIES = {
    'list': 'view',
    'retrieve': 'view',
    'create': 'create',
    'update': 'update',
    'partial_update': 'update',
    'destroy': 'delete',
    'restore': policies.RESTORE,
    'force_delete': policies.FORCE_DELETE,
}

METHOD_ABILITIES = {
    'GET': 'view',
    'HEAD': 'view',
    'OPTIONS': 'view',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


class HasAbility(BasePermission):
    """Allow a request when the principal can perform the view's ability."""

    def get_model(self, view):
        model = getattr(view, 'ability_model', None)
        if model is None and getattr(view, 'queryset', None) is not None:
            model = view.queryset.model
        return model

    def get_action(self, request, view):
        action = getattr(view, 'ability_action', None)
        if action:
            return action
        view_action = getattr(view, 'action', None)
        if view_action:
            overrides = getattr(view, 'ability_actions', None) or {}
            if view_action in overrides:
                return overrides[view_action]
            return ACTION_ABILITIES.get(view_action, view_action)
        return METHOD_ABILITIES.get(request.method)

    def get_ability(self, request, view):
        model = self.get_model(view)
        action = self.get_action(request, view)
        if model is None or action is None:
            return None
        declaration = capabilities.registry.declaration_for(model)
        if declaration is None:
            return None
        return f"{action}_{declaration.prefix}"

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        self.check_tenant_membership(request)
        ability = self.get_ability(request, view)
        if ability is None:
            return True
        # Detail actions are decided against the instance.
        if getattr(view, 'detail', False):
            return True
        decision = authorization.check(request.user, ability, self.get_model(view))
        if not decision.allowed:
            raise AuthorizationError(ability=ability)
        return True

    def check_tenant_membership(self, request):
        """
        A tenant-bound principal only acts within its own tenant.

        The request may name another tenant through the header; only
        principals without a tenant are trusted to do that.
        """
        principal = request.user
        context = getattr(request, 'tenant_context', None)
        if principal.tenant_id is None or context is None or context.tenant is None:
            return
        if context.tenant_id != principal.tenant_id:
            SecurityLogger.log_event(
                'foreign_tenant_requested',
                user_id=str(principal.pk),
                principal_tenant_id=str(principal.tenant_id),
                requested_tenant_id=str(context.tenant_id),
                source=context.source,
            )
            raise TenantNotFound()

    def has_object_permission(self, request, view, obj):
        ability = self.get_ability(request, view)
        if ability is None:
            return True
        decision = authorization.check(request.user, ability, obj)
        if decision.allowed:
            return True
        if decision.reason == policies.DENY_CROSS_TENANT.reason:
            raise ResourceNotFound()
        raise AuthorizationError(ability=ability)
