"""
Patient models.

Patients are the clinic's core tenant-owned record. Every query goes through
the tenant-scoped manager:

    Patient.objects.for_context(request.tenant_context).active().search('smith')
"""
from datetime import date
from decimal import Decimal
from django.db import models
from django.db.models import Q
from apps.core.scoping import TenantOwnedModel, TenantScopedManager, TenantScopedQuerySet
from apps.rbac import capabilities


class Gender(models.TextChoices):
    MALE = 'male', 'Male'
    FEMALE = 'female', 'Female'
    OTHER = 'other', 'Other'
    PREFER_NOT_TO_SAY = 'prefer_not_to_say', 'Prefer not to say'


class PatientStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    DECEASED = 'deceased', 'Deceased'


class ContactMethod(models.TextChoices):
    PHONE = 'phone', 'Phone Call'
    EMAIL = 'email', 'Email'
    SMS = 'sms', 'SMS/Text Message'


class PatientQuerySet(TenantScopedQuerySet):

    def active(self):
        return self.filter(status=PatientStatus.ACTIVE)

    def with_outstanding_balance(self):
        return self.filter(outstanding_balance__gt=0)

    def search(self, term):
        """Case-insensitive match on name, email or phone."""
        term = (term or '').strip()
        if not term:
            return self
        return self.filter(
            Q(first_name__icontains=term)
            | Q(last_name__icontains=term)
            | Q(email__icontains=term)
            | Q(phone__icontains=term)
        )


class PatientManager(TenantScopedManager.from_queryset(PatientQuerySet)):
    pass


@capabilities.register
class Patient(TenantOwnedModel):
    """
    A patient of one clinic.

    Soft deleted; restoring requires ``delete_patients`` and permanent
    removal is reserved for administrators.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.PROTECT,
        related_name='patients',
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    middle_name = models.CharField(max_length=100, blank=True, default='')
    preferred_name = models.CharField(max_length=100, blank=True, default='')
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, choices=Gender.choices, blank=True, default='')

    phone = models.CharField(max_length=50, blank=True, default='')
    phone_secondary = models.CharField(max_length=50, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    preferred_contact_method = models.CharField(
        max_length=10,
        choices=ContactMethod.choices,
        default=ContactMethod.PHONE,
    )
    contact_consent = models.BooleanField(default=False)
    marketing_consent = models.BooleanField(default=False)
    address = models.JSONField(null=True, blank=True)

    preferred_dentist = models.ForeignKey(
        'rbac.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='preferred_by_patients',
    )
    status = models.CharField(
        max_length=20,
        choices=PatientStatus.choices,
        default=PatientStatus.ACTIVE,
        db_index=True,
    )
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    outstanding_balance_currency = models.CharField(max_length=3, default='USD')
    medical_alerts = models.JSONField(default=list, blank=True)
    insurance_info = models.JSONField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    objects = PatientManager()

    class Meta(TenantOwnedModel.Meta):
        db_table = 'patients'
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='patients_tenant_status_idx'),
            models.Index(fields=['tenant', 'last_name', 'first_name'], name='patients_tenant_name_idx'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        parts = [self.first_name, self.middle_name, self.last_name]
        return ' '.join(part for part in parts if part).strip()

    @property
    def name(self):
        return self.preferred_name or f"{self.first_name} {self.last_name}".strip()

    @property
    def age(self):
        if self.date_of_birth is None:
            return None
        today = date.today()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

    def is_active(self):
        return self.status == PatientStatus.ACTIVE

    def has_medical_alerts(self):
        return bool(self.medical_alerts)

    def has_outstanding_balance(self):
        return self.outstanding_balance is not None and self.outstanding_balance > 0

    def formatted_address(self):
        if not self.address:
            return None
        keys = ['street', 'city', 'state', 'postal_code', 'country']
        parts = [str(self.address[key]) for key in keys if self.address.get(key)]
        return ', '.join(parts) or None
