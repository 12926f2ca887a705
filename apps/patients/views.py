"""
Views for patient API endpoints.
"""
import logging
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import PlanLimitExceeded
from apps.patients.models import Patient
from apps.patients.serializers import PatientListSerializer, PatientSerializer
from apps.rbac.permissions import HasAbility
from apps.rbac.views import StandardResultsSetPagination
from apps.tenants.models import SubscriptionPlan

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        tags=['Patients'],
        summary='List patients',
        parameters=[
            OpenApiParameter('status', str, description='Filter by patient status'),
            OpenApiParameter('search', str, description='Search name, email and phone'),
            OpenApiParameter('with_balance', bool, description='Only patients with an outstanding balance'),
        ],
        responses={200: PatientListSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=['Patients'], summary='Get patient'),
    create=extend_schema(tags=['Patients'], summary='Create patient'),
    partial_update=extend_schema(tags=['Patients'], summary='Update patient'),
    destroy=extend_schema(tags=['Patients'], summary='Soft delete patient'),
)
class PatientViewSet(viewsets.ModelViewSet):
    """
    Patients of the current tenant.

    Abilities: ``view_patients``, ``create_patients``, ``update_patients`` and
    ``delete_patients`` (soft delete and restore). Permanent deletion is
    admin-only. Patients of other tenants are never found.
    """

    permission_classes = [HasAbility]
    ability_model = Patient
    pagination_class = StandardResultsSetPagination
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        include_deleted = self.action in ['restore', 'force_delete']
        queryset = Patient.objects.for_context(
            self.request.tenant_context, include_deleted=include_deleted
        )
        if self.action != 'list':
            return queryset

        patient_status = self.request.query_params.get('status')
        if patient_status:
            queryset = queryset.filter(status=patient_status)
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.search(search)
        if self.request.query_params.get('with_balance') == 'true':
            queryset = queryset.with_outstanding_balance()
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientListSerializer
        return PatientSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['tenant_context'] = self.request.tenant_context
        return context

    def perform_create(self, serializer):
        tenant = self.request.tenant_context.tenant
        if tenant is not None and not tenant.can_add_patient():
            raise PlanLimitExceeded(
                f"Your plan allows {SubscriptionPlan(tenant.subscription_plan).max_patients()} patients",
                details={'limit': 'max_patients'},
            )
        patient = serializer.save()
        logger.info(
            f"Patient {patient.pk} created",
            extra={'tenant_id': str(patient.tenant_id), 'user_id': str(self.request.user.pk)},
        )

    def perform_destroy(self, instance):
        instance.delete()
        logger.info(
            f"Patient {instance.pk} soft deleted",
            extra={'tenant_id': str(instance.tenant_id), 'user_id': str(self.request.user.pk)},
        )

    @extend_schema(tags=['Patients'], summary='Restore patient', request=None, responses={200: PatientSerializer})
    @action(detail=True, methods=['post'])
    def restore(self, request, pk=None):
        patient = self.get_object()
        patient.restore()
        return Response(PatientSerializer(patient, context=self.get_serializer_context()).data)

    @extend_schema(tags=['Patients'], summary='Permanently delete patient', request=None, responses={204: None})
    @action(detail=True, methods=['delete'], url_path='force')
    def force_delete(self, request, pk=None):
        patient = self.get_object()
        patient.hard_delete()
        logger.warning(
            f"Patient {pk} permanently deleted",
            extra={'tenant_id': str(request.tenant_context.tenant_id), 'user_id': str(request.user.pk)},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
