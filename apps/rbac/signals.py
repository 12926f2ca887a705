"""
RBAC signals for permission cache invalidation.

Direct grants and role changes drop the affected principal's cached
permission set once the surrounding transaction commits. Role-permission
rows belong to every principal of a role, so they bump the catalog version.
"""
from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver


@receiver([post_save, post_delete], sender='rbac.UserPermission')
def invalidate_on_direct_grant_change(sender, instance, **kwargs):
    from apps.rbac.services import RBACService

    user_id = instance.user_id
    transaction.on_commit(lambda: RBACService.invalidate_user_cache(user_id))


@receiver([post_save, post_delete], sender='rbac.RolePermission')
def invalidate_on_role_grant_change(sender, instance, **kwargs):
    from apps.rbac.services import RBACService

    transaction.on_commit(RBACService.invalidate_all)


@receiver(pre_save, sender='rbac.User')
def remember_previous_role(sender, instance, **kwargs):
    update_fields = kwargs.get('update_fields')
    if update_fields is not None and 'primary_role' not in update_fields:
        instance._previous_role = None
        return
    if instance._state.adding or instance.pk is None:
        instance._previous_role = None
        return
    instance._previous_role = (
        sender._base_manager.filter(pk=instance.pk).values_list('primary_role', flat=True).first()
    )


@receiver(post_save, sender='rbac.User')
def invalidate_on_role_change(sender, instance, created, **kwargs):
    from apps.rbac.services import RBACService

    previous = getattr(instance, '_previous_role', None)
    if not created and previous is not None and previous != instance.primary_role:
        user_id = instance.pk
        transaction.on_commit(lambda: RBACService.invalidate_user_cache(user_id))
