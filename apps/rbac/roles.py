"""
Closed set of clinic roles and their default permissions.

Admin is never materialized as role-permission rows; the authorization
engine grants it every ability. The defaults below are intersected with the
permission catalog whenever permissions are synced.
"""
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = 'admin', 'Administrator'
    DENTIST = 'dentist', 'Dentist'
    HYGIENIST = 'hygienist', 'Dental Hygienist'
    RECEPTIONIST = 'receptionist', 'Receptionist'
    ASSISTANT = 'assistant', 'Dental Assistant'

    @classmethod
    def providers(cls):
        return [cls.DENTIST, cls.HYGIENIST]

    @classmethod
    def staff(cls):
        return [cls.RECEPTIONIST, cls.ASSISTANT]

    @classmethod
    def materialized(cls):
        """Roles whose grants live in the role-permission map."""
        return [role for role in cls if role != cls.ADMIN]

    def is_provider(self):
        return self in self.providers()

    def is_admin(self):
        return self == UserRole.ADMIN


ROLE_DEFAULT_PERMISSIONS = {
    UserRole.DENTIST: [
        'view_patients', 'create_patients', 'update_patients',
        'view_users',
    ],
    UserRole.HYGIENIST: [
        'view_patients', 'update_patients',
        'view_users',
    ],
    UserRole.RECEPTIONIST: [
        'view_patients', 'create_patients', 'update_patients',
        'view_users',
    ],
    UserRole.ASSISTANT: [
        'view_patients',
    ],
}


def default_permissions_for(role):
    return list(ROLE_DEFAULT_PERMISSIONS.get(UserRole(role), []))
