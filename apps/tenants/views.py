"""
Tenant API views.

- ``/v1/tenant``: the tenant the request resolved to
- ``/v1/platform/tenants``: tenant directory for platform operators
"""
import logging
from django.db.models import ProtectedError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import ResourceConflict, ResourceNotFound
from apps.rbac.permissions import HasAbility
from apps.rbac.views import StandardResultsSetPagination
from apps.tenants.models import Tenant
from apps.tenants.serializers import (
    TenantProvisionSerializer, TenantSerializer, TenantSubscriptionSerializer,
    TenantUpdateSerializer,
)
from apps.tenants.services import TenantService

logger = logging.getLogger(__name__)


class CurrentTenantView(APIView):
    """
    GET /v1/tenant
    PATCH /v1/tenant

    The tenant bound to this request. Requires ``view_tenants`` or
    ``update_tenants`` and membership of that tenant.
    """

    permission_classes = [HasAbility]
    ability_model = Tenant
    detail = True

    def get_object(self):
        tenant = self.request.tenant_context.tenant if self.request.tenant_context else None
        if tenant is None:
            raise ResourceNotFound('No tenant is bound to this request')
        self.check_object_permissions(self.request, tenant)
        return tenant

    @extend_schema(tags=['Tenants'], summary='Get current tenant', responses={200: TenantSerializer})
    def get(self, request):
        return Response(TenantSerializer(self.get_object()).data)

    @extend_schema(
        tags=['Tenants'],
        summary='Update current tenant',
        request=TenantUpdateSerializer,
        responses={200: TenantSerializer},
    )
    def patch(self, request):
        tenant = self.get_object()
        serializer = TenantUpdateSerializer(tenant, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        tenant = serializer.save()
        logger.info(
            f"Tenant {tenant.slug} updated by {request.user.pk}",
            extra={'tenant_id': str(tenant.pk), 'fields': sorted(serializer.validated_data)},
        )
        return Response(TenantSerializer(tenant).data)


@extend_schema_view(
    list=extend_schema(
        tags=['Platform - Tenants'],
        summary='List tenants',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, description='Filter by subscription status'),
            OpenApiParameter('accessible', OpenApiTypes.BOOL, description='Only accessible tenants'),
            OpenApiParameter('with_deleted', OpenApiTypes.BOOL, description='Include soft-deleted tenants'),
        ],
    ),
    retrieve=extend_schema(tags=['Platform - Tenants'], summary='Get tenant'),
    create=extend_schema(
        tags=['Platform - Tenants'],
        summary='Provision tenant',
        request=TenantProvisionSerializer,
        responses={201: TenantSerializer},
    ),
    partial_update=extend_schema(tags=['Platform - Tenants'], summary='Update tenant', request=TenantUpdateSerializer),
    destroy=extend_schema(tags=['Platform - Tenants'], summary='Soft delete tenant'),
)
class PlatformTenantViewSet(viewsets.ModelViewSet):
    """
    Tenant directory for platform operators (principals without a tenant).

    Creating, deleting and restoring tenants is reserved for platform
    principals; force deletion additionally requires the admin role.
    """

    permission_classes = [HasAbility]
    ability_model = Tenant
    ability_actions = {'subscription': 'update'}
    serializer_class = TenantSerializer
    pagination_class = StandardResultsSetPagination
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        include_deleted = (
            self.action in ['restore', 'force_delete']
            or self.request.query_params.get('with_deleted') == 'true'
        )
        queryset = Tenant.objects_with_deleted.all() if include_deleted else Tenant.objects.all()
        subscription_status = self.request.query_params.get('status')
        if subscription_status:
            queryset = queryset.filter(subscription_status=subscription_status)
        if self.request.query_params.get('accessible') == 'true':
            queryset = queryset.filter(
                pk__in=Tenant.objects.accessible().values('pk')
            )
        return queryset.order_by('name')

    def get_serializer_class(self):
        if self.action == 'create':
            return TenantProvisionSerializer
        if self.action in ['update', 'partial_update']:
            return TenantUpdateSerializer
        return TenantSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tenant = TenantService.provision(**serializer.validated_data)
        return Response(TenantSerializer(tenant).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        super().update(request, *args, **kwargs)
        return Response(TenantSerializer(self.get_object()).data)

    def perform_destroy(self, instance):
        instance.delete()
        logger.info(
            f"Tenant {instance.slug} soft deleted by {self.request.user.pk}",
            extra={'tenant_id': str(instance.pk)},
        )

    @extend_schema(tags=['Platform - Tenants'], summary='Restore tenant', request=None, responses={200: TenantSerializer})
    @action(detail=True, methods=['post'])
    def restore(self, request, pk=None):
        tenant = self.get_object()
        tenant.restore()
        return Response(TenantSerializer(tenant).data)

    @extend_schema(tags=['Platform - Tenants'], summary='Permanently delete tenant', request=None, responses={204: None})
    @action(detail=True, methods=['delete'], url_path='force')
    def force_delete(self, request, pk=None):
        tenant = self.get_object()
        try:
            tenant.hard_delete()
        except ProtectedError:
            raise ResourceConflict(
                'Tenant still owns users or patients and cannot be removed',
                details={'tenant_id': str(tenant.pk)},
            )
        logger.warning(
            f"Tenant {tenant.slug} permanently deleted by {request.user.pk}",
            extra={'tenant_id': str(tenant.pk)},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=['Platform - Tenants'],
        summary='Change subscription',
        request=TenantSubscriptionSerializer,
        responses={200: TenantSerializer},
    )
    @action(detail=True, methods=['post'])
    def subscription(self, request, pk=None):
        tenant = self.get_object()
        serializer = TenantSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        TenantService.change_subscription(
            tenant,
            serializer.validated_data['subscription_status'],
            plan=serializer.validated_data.get('subscription_plan'),
            ends_at=serializer.validated_data.get('subscription_ends_at'),
        )
        return Response(TenantSerializer(tenant).data)
