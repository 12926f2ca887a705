"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Login
- Principals (users) and their effective permissions
- Permission catalog entries and direct grants
"""
from rest_framework import serializers
from apps.core.serializers import RejectClientTenantMixin
from apps.rbac.models import Permission, User, UserPermission
from apps.rbac.roles import UserRole


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        return value.strip()


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    full_name = serializers.CharField(read_only=True)
    role_display = serializers.CharField(source='get_primary_role_display', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'tenant', 'email', 'title', 'first_name', 'last_name', 'full_name',
            'primary_role', 'role_display', 'phone', 'license_number', 'specialization',
            'is_active', 'last_login_at', 'created_at', 'updated_at',
        ]
        # Email uniqueness is global; it is never changed through this serializer.
        read_only_fields = [
            'id', 'tenant', 'email', 'is_active', 'last_login_at', 'created_at', 'updated_at',
        ]


class UserUpdateSerializer(RejectClientTenantMixin, UserSerializer):
    """
    Profile and role updates.

    Only administrators may change a role; everybody else may only edit
    their own profile fields.
    """

    def validate_primary_role(self, value):
        request = self.context.get('request')
        principal = getattr(request, 'user', None)
        if self.instance is not None and value != self.instance.primary_role:
            if principal is None or not principal.is_admin():
                raise serializers.ValidationError("Only administrators can change roles.")
            if self.instance.pk == principal.pk and value != UserRole.ADMIN:
                raise serializers.ValidationError("Administrators cannot demote themselves.")
        return value


class CurrentUserSerializer(UserSerializer):
    """The authenticated principal with its effective permissions."""

    permissions = serializers.SerializerMethodField()
    is_platform_user = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['permissions', 'is_platform_user']

    def get_permissions(self, obj):
        from apps.rbac.services import RBACService
        return sorted(RBACService.resolve_permissions(obj))

    def get_is_platform_user(self, obj):
        return obj.is_platform_user()


class PermissionSerializer(serializers.ModelSerializer):
    """Serializer for Permission model."""

    class Meta:
        model = Permission
        fields = ['id', 'name', 'guard', 'created_at']
        read_only_fields = fields


class UserPermissionSerializer(serializers.ModelSerializer):
    """Direct grant to a principal."""

    permission = serializers.CharField(source='permission.name', read_only=True)
    granted_by = serializers.EmailField(source='granted_by.email', read_only=True, default=None)

    class Meta:
        model = UserPermission
        fields = ['id', 'permission', 'reason', 'granted_by', 'created_at']
        read_only_fields = fields


class UserPermissionCreateSerializer(serializers.Serializer):
    """Grant a catalog permission to a principal."""

    permission = serializers.CharField(max_length=150)
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_permission(self, value):
        if not Permission.objects.filter(name=value).exists():
            raise serializers.ValidationError(f"Permission '{value}' is not in the catalog.")
        return value


class UserCreateSerializer(RejectClientTenantMixin, serializers.Serializer):
    """Create a principal in the request's tenant."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, style={'input_type': 'password'})
    first_name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    title = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    primary_role = serializers.ChoiceField(choices=UserRole.choices, default=UserRole.ASSISTANT)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    license_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    specialization = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate_email(self, value):
        if User.objects.by_email(value) is not None:
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def create(self, validated_data):
        context = self.context['tenant_context']
        password = validated_data.pop('password')
        return User.objects.for_context(context).create_user(password=password, **validated_data)
