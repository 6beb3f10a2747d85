"""Contractors views."""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter
from rest_framework.response import Response

from apps.authz.permissions import IsClinicUser
from apps.core.observability import get_sanitized_logger, log_domain_event

from .models import Contractor
from .serializers import ContractorDocumentsSerializer, ContractorSerializer

logger = get_sanitized_logger(__name__)


class ContractorViewSet(mixins.ListModelMixin,
                        mixins.CreateModelMixin,
                        mixins.DestroyModelMixin,
                        viewsets.GenericViewSet):
    """
    The clinic's contractor registry.

    Endpoints:
    - GET    /contractors/?phone_number=7900  - list, optional phone substring
    - POST   /contractors/                    - create
    - DELETE /contractors/{id}/               - delete (only without documents)
    - GET    /contractors/{id}/documents/     - contractor's documents
    """
    serializer_class = ContractorSerializer
    permission_classes = [IsClinicUser]
    filter_backends = [SearchFilter]
    search_fields = ['last_name', 'first_name']
    pagination_class = None

    def get_queryset(self):
        queryset = Contractor.objects.filter(clinic_id=self.request.user.clinic_id)
        phone_number = self.request.query_params.get('phone_number')
        if phone_number:
            queryset = queryset.filter(phone_number__contains=phone_number)
        return queryset

    def perform_create(self, serializer):
        contractor = serializer.save(clinic=self.request.user.clinic)
        log_domain_event(
            'contractor_created',
            entity_type='Contractor',
            entity_id=str(contractor.id),
            result='success',
        )

    def destroy(self, request, pk=None):
        contractor = self.get_object()
        if contractor.documents.exists():
            log_domain_event(
                'contractor_deleted',
                entity_type='Contractor',
                entity_id=str(contractor.id),
                result='blocked',
            )
            return Response(
                {'error': 'Cannot delete a contractor that has linked documents'},
                status=status.HTTP_400_BAD_REQUEST
            )
        contractor.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def documents(self, request, pk=None):
        contractor = self.get_object()
        serializer = ContractorDocumentsSerializer({
            'contractor': contractor,
            'documents': contractor.documents.order_by('-created_at'),
        })
        return Response(serializer.data)
