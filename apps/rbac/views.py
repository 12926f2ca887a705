"""
RBAC REST API views.

Implements endpoints for:
- Principals within the current tenant (list, create, update, deactivate)
- Direct permission grants
- The permission catalog
"""
import logging
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import PlanLimitExceeded
from apps.rbac.models import Permission, User, UserPermission
from apps.rbac.permissions import HasAbility
from apps.rbac.roles import UserRole
from apps.rbac.serializers import (
    PermissionSerializer, UserCreateSerializer, UserPermissionCreateSerializer,
    UserPermissionSerializer, UserSerializer, UserUpdateSerializer,
)
from apps.rbac.services import RBACService
from apps.tenants.models import SubscriptionPlan

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


@extend_schema_view(
    list=extend_schema(
        tags=['RBAC - Users'],
        summary='List users',
        parameters=[
            OpenApiParameter('role', OpenApiTypes.STR, description='Filter by primary role'),
            OpenApiParameter('is_active', OpenApiTypes.BOOL, description='Filter by active status'),
        ],
    ),
    retrieve=extend_schema(tags=['RBAC - Users'], summary='Get user'),
    create=extend_schema(tags=['RBAC - Users'], summary='Create user', request=UserCreateSerializer),
    partial_update=extend_schema(tags=['RBAC - Users'], summary='Update user', request=UserUpdateSerializer),
    destroy=extend_schema(
        tags=['RBAC - Users'],
        summary='Deactivate user',
        description='Users are deactivated, never deleted, so their history is kept.',
    ),
)
class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.CreateModelMixin,
                  mixins.UpdateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    Principals of the current tenant.

    Abilities: ``view_users``, ``create_users``, ``update_users`` and
    ``delete_users`` (deactivation). Everyone may view and update their own
    record. Direct grants are admin-only.
    """

    permission_classes = [HasAbility]
    ability_model = User
    ability_actions = {'permissions': 'grant', 'revoke_permission': 'grant'}
    pagination_class = StandardResultsSetPagination
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = User.objects.for_context(self.request.tenant_context)
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(primary_role=role)
        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in ['true', '1', 'yes'])
        return queryset.order_by('last_name', 'first_name', 'email')

    def get_serializer_class(self):
        if self.action == 'create':
            return UserCreateSerializer
        if self.action in ['update', 'partial_update']:
            return UserUpdateSerializer
        return UserSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['tenant_context'] = self.request.tenant_context
        return context

    def create(self, request, *args, **kwargs):
        tenant = request.tenant_context.tenant
        if tenant is not None and not tenant.can_add_user():
            raise PlanLimitExceeded(
                f"Your plan allows {SubscriptionPlan(tenant.subscription_plan).max_users()} users",
                details={'limit': 'max_users'},
            )
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(
            f"User {user.pk} created with role {user.primary_role}",
            extra={'tenant_id': str(user.tenant_id) if user.tenant_id else None},
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
        RBACService.invalidate_user_cache(instance.pk)
        logger.info(
            f"User {instance.pk} deactivated by {self.request.user.pk}",
            extra={'tenant_id': str(instance.tenant_id) if instance.tenant_id else None},
        )

    @extend_schema(
        tags=['RBAC - Users'],
        summary='List or grant direct permissions',
        request=UserPermissionCreateSerializer,
        responses={200: UserPermissionSerializer(many=True), 201: UserPermissionSerializer},
    )
    @action(detail=True, methods=['get', 'post'])
    def permissions(self, request, pk=None):
        user = self.get_object()
        if request.method == 'GET':
            grants = UserPermission.objects.for_user(user).select_related('permission', 'granted_by')
            return Response(UserPermissionSerializer(grants, many=True).data)

        serializer = UserPermissionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        grant, created = RBACService.grant_permission(
            user,
            serializer.validated_data['permission'],
            reason=serializer.validated_data['reason'],
            granted_by=request.user,
        )
        return Response(
            UserPermissionSerializer(grant).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(tags=['RBAC - Users'], summary='Revoke a direct permission')
    @action(detail=True, methods=['delete'], url_path=r'permissions/(?P<permission_name>[a-z0-9_]+)')
    def revoke_permission(self, request, pk=None, permission_name=None):
        user = self.get_object()
        if not RBACService.revoke_permission(user, permission_name):
            return Response(
                {'error': {'code': 'NOT_FOUND', 'message': 'Permission is not granted to this user'}},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permission catalog',
        parameters=[OpenApiParameter('guard', OpenApiTypes.STR, description='Permission guard')],
        responses={200: PermissionSerializer(many=True)},
    )
)
class PermissionListView(APIView):
    """
    GET /v1/permissions

    The global permission catalog. Any authenticated principal may read it.
    """

    def get(self, request):
        guard = request.query_params.get('guard')
        permissions = Permission.objects.for_guard(guard) if guard else Permission.objects.all()
        return Response({
            'count': permissions.count(),
            'permissions': PermissionSerializer(permissions, many=True).data,
        })


@extend_schema(
    tags=['RBAC - Permissions'],
    summary='Role permissions',
    responses={200: OpenApiTypes.OBJECT},
)
class RolePermissionsView(APIView):
    """
    GET /v1/roles/<role>/permissions

    Materialized default permissions of a role. Admin holds every ability and
    has no rows.
    """

    def get(self, request, role):
        if role not in UserRole.values:
            return Response(
                {'error': {'code': 'NOT_FOUND', 'message': f"Unknown role '{role}'"}},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({
            'role': role,
            'all_permissions': role == UserRole.ADMIN,
            'permissions': sorted(RBACService.role_permissions(role)),
        })
