"""
Serializers for patient API endpoints.
"""
from rest_framework import serializers
from apps.core.serializers import RejectClientTenantMixin
from apps.patients.models import Patient
from apps.rbac.models import User
from apps.rbac.roles import UserRole


class PatientListSerializer(serializers.ModelSerializer):
    """Compact representation for list endpoints."""

    full_name = serializers.CharField(read_only=True)
    age = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Patient
        fields = [
            'id', 'first_name', 'last_name', 'preferred_name', 'full_name', 'age',
            'phone', 'email', 'status', 'outstanding_balance', 'outstanding_balance_currency',
        ]
        read_only_fields = fields


class PatientSerializer(RejectClientTenantMixin, serializers.ModelSerializer):
    """
    Full patient record.

    The owning tenant is never accepted from the client; it comes from the
    request's tenant context when the patient is created.
    """

    full_name = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    age = serializers.IntegerField(read_only=True, allow_null=True)
    formatted_address = serializers.CharField(read_only=True, allow_null=True)
    preferred_dentist = serializers.PrimaryKeyRelatedField(
        queryset=User._base_manager.none(), required=False, allow_null=True
    )

    class Meta:
        model = Patient
        fields = [
            'id', 'tenant', 'first_name', 'last_name', 'middle_name', 'preferred_name',
            'full_name', 'name', 'age', 'date_of_birth', 'gender',
            'phone', 'phone_secondary', 'email', 'preferred_contact_method',
            'contact_consent', 'marketing_consent', 'address', 'formatted_address',
            'preferred_dentist', 'status', 'outstanding_balance', 'outstanding_balance_currency',
            'medical_alerts', 'insurance_info', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'tenant', 'outstanding_balance', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        tenant_context = self.context.get('tenant_context')
        if tenant_context is not None:
            self.fields['preferred_dentist'].queryset = (
                User.objects.for_context(tenant_context).filter(primary_role__in=UserRole.providers())
            )

    def validate_address(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("Address must be an object.")
        return value

    def validate_medical_alerts(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Medical alerts must be a list.")
        return value

    def create(self, validated_data):
        tenant_context = self.context['tenant_context']
        return Patient.objects.for_context(tenant_context).create(**validated_data)
