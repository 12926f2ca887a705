"""
Serializers for tenant API endpoints.
"""
from rest_framework import serializers
from apps.tenants.models import SubscriptionPlan, SubscriptionStatus, Tenant


class TenantSerializer(serializers.ModelSerializer):
    """Read representation of a tenant."""

    is_accessible = serializers.BooleanField(read_only=True)
    is_on_trial = serializers.BooleanField(read_only=True)
    trial_days_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = Tenant
        fields = [
            'id', 'name', 'slug', 'email', 'phone', 'address', 'country_code',
            'is_active', 'subscription_status', 'subscription_plan',
            'trial_ends_at', 'subscription_ends_at', 'is_accessible', 'is_on_trial',
            'trial_days_remaining', 'default_currency', 'timezone', 'locale',
            'features', 'settings', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class TenantUpdateSerializer(serializers.ModelSerializer):
    """Fields a clinic may edit on its own tenant."""

    class Meta:
        model = Tenant
        fields = [
            'name', 'email', 'phone', 'address', 'country_code',
            'default_currency', 'timezone', 'locale', 'settings',
        ]

    def validate_settings(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Settings must be an object.")
        return value


class TenantProvisionSerializer(serializers.Serializer):
    """Platform-side tenant provisioning."""

    name = serializers.CharField(max_length=255)
    slug = serializers.SlugField(max_length=100, required=False)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    plan = serializers.ChoiceField(choices=SubscriptionPlan.choices, default=SubscriptionPlan.BASIC)
    trial_days = serializers.IntegerField(min_value=0, max_value=365, required=False)
    admin_email = serializers.EmailField(required=False)
    admin_password = serializers.CharField(
        required=False, write_only=True, min_length=8, style={'input_type': 'password'}
    )

    def validate(self, attrs):
        if attrs.get('admin_email') and not attrs.get('admin_password'):
            raise serializers.ValidationError({'admin_password': 'Required with admin_email.'})
        return attrs


class TenantSubscriptionSerializer(serializers.Serializer):
    """Platform-side subscription change."""

    subscription_status = serializers.ChoiceField(choices=SubscriptionStatus.choices)
    subscription_plan = serializers.ChoiceField(choices=SubscriptionPlan.choices, required=False)
    subscription_ends_at = serializers.DateTimeField(required=False)
