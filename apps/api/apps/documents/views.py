"""Documents views."""
import math
from datetime import datetime, time as dt_time, timezone as dt_timezone

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db.models import Max
from django.utils.dateparse import parse_date
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.models import RoleChoices
from apps.authz.permissions import IsClinicUser, IsDocumentParticipant, IsPatientUser
from apps.core.models import Clinic
from apps.core.observability import get_sanitized_logger
from apps.files import services as file_services
from apps.files.models import ClinicFile

from . import services
from .exceptions import (
    DeletionConflictError,
    MigrationInProgressError,
    ObjectNotFoundError,
    ObjectStoreUnavailableError,
)
from .models import Document, DocumentStatusChoices
from .serializers import (
    DocumentDetailSerializer,
    DocumentSerializer,
    DocumentUploadSerializer,
    PatientClinicSerializer,
)

logger = get_sanitized_logger(__name__)

# Status names accepted by the list filters besides the canonical tags.
STATUS_ALIASES = {
    'docPrepared': DocumentStatusChoices.PREPARED,
    'docSent': DocumentStatusChoices.SENT,
    'docSigned': DocumentStatusChoices.SIGNED,
    'docRejected': DocumentStatusChoices.REJECTED,
}


class DocumentPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100


def error_response(exc):
    """
    Map a service-layer exception to an API response.

    Unknown exceptions are re-raised.
    """
    if isinstance(exc, ObjectNotFoundError):
        return Response({'error': 'Document file not found in storage'}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ObjectDoesNotExist):
        return Response({'error': 'Document not found'}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, MigrationInProgressError):
        retry_after = exc.retry_after or settings.DOCUMENT_LOCK_POLL_SECONDS
        response = Response(
            {'error': 'Document storage migration in progress, retry later'},
            status=status.HTTP_409_CONFLICT
        )
        response['Retry-After'] = str(max(1, math.ceil(retry_after)))
        return response
    if isinstance(exc, ObjectStoreUnavailableError):
        return Response(
            {'error': 'Document storage is temporarily unavailable'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )
    if isinstance(exc, DeletionConflictError):
        return Response({'error': '; '.join(exc.messages)}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, ValidationError):
        return Response({'error': '; '.join(exc.messages)}, status=status.HTTP_400_BAD_REQUEST)
    raise exc


def parse_statuses(values):
    statuses = []
    for value in values:
        value = STATUS_ALIASES.get(value, value)
        if value in DocumentStatusChoices.values:
            statuses.append(value)
    return statuses


def parse_date_bound(value, name, end=False):
    """Parse a YYYY-MM-DD query parameter into an inclusive UTC bound."""
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise DRFValidationError({name: 'Expected a date in YYYY-MM-DD format.'})
    return datetime.combine(parsed, dt_time.max if end else dt_time.min, tzinfo=dt_timezone.utc)


class DocumentViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    Documents sent by a clinic.

    Endpoints:
    - GET    /documents/                 - clinic's sent documents (filters, pagination)
    - POST   /documents/                 - create a prepared document (upload or library file)
    - GET    /documents/{id}/            - metadata, events and base64 payload
    - POST   /documents/{id}/send/       - prepared -> sent (clinic)
    - POST   /documents/{id}/sign/       - sent -> signed (recipient)
    - POST   /documents/{id}/reject/     - sent -> rejected (recipient)
    - DELETE /documents/{id}/            - delete (?detach_contractors=true)
    """
    serializer_class = DocumentSerializer
    pagination_class = DocumentPagination
    permission_classes = [IsAuthenticated, IsDocumentParticipant]

    def get_permissions(self):
        if self.action in ('list', 'create', 'destroy', 'send'):
            return [IsClinicUser(), IsDocumentParticipant()]
        if self.action in ('sign', 'reject'):
            return [IsPatientUser(), IsDocumentParticipant()]
        return super().get_permissions()

    def get_queryset(self):
        user = self.request.user
        queryset = Document.objects.all()
        if user.role == RoleChoices.ADMIN:
            pass
        elif user.is_clinic_user:
            queryset = queryset.filter(clinic_id=user.clinic_id)
        else:
            queryset = queryset.received_by(user.phone_number)

        if self.action == 'retrieve':
            return queryset.prefetch_related('events')
        if self.action != 'list':
            return queryset

        params = self.request.query_params
        statuses = parse_statuses(params.getlist('status'))
        if statuses:
            queryset = queryset.with_statuses(statuses)
        if params.get('recipient_name'):
            queryset = queryset.recipient_name_contains(params['recipient_name'])
        if params.get('recipient_phone_number'):
            queryset = queryset.recipient_phone_contains(params['recipient_phone_number'])
        return queryset.created_between(
            parse_date_bound(params.get('start_date'), 'start_date'),
            parse_date_bound(params.get('end_date'), 'end_date', end=True),
        ).order_by('-created_at')

    def create(self, request):
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        upload = data.get('file')
        clinic = request.user.clinic

        try:
            if upload is not None:
                document = services.create_document(
                    clinic=clinic,
                    title=data['title'],
                    recipient_name=data['recipient_name'],
                    recipient_phone_number=data['recipient_phone_number'],
                    payload=upload.read(),
                    content_type=getattr(upload, 'content_type', None) or 'application/octet-stream',
                    filename=upload.name,
                    created_by=request.user,
                )
            else:
                clinic_file = file_services.find_file(
                    clinic,
                    file_id=data.get('file_id'),
                    document_title=data['title'],
                )
                document = file_services.send_file(
                    clinic,
                    clinic_file,
                    recipient_name=data['recipient_name'],
                    recipient_phone_number=data['recipient_phone_number'],
                    title=data['title'],
                    created_by=request.user,
                )
        except ClinicFile.DoesNotExist:
            return Response({'error': 'Library file not found'}, status=status.HTTP_404_NOT_FOUND)
        except (ValidationError, ObjectNotFoundError, ObjectStoreUnavailableError) as e:
            return error_response(e)

        return Response(DocumentDetailSerializer(document).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        document = self.get_object()
        try:
            document, payload = services.get_document_payload(document.pk)
        except (ObjectDoesNotExist, MigrationInProgressError,
                ObjectNotFoundError, ObjectStoreUnavailableError) as e:
            logger.warning(
                'Document payload read failed',
                extra={
                    'event': 'document_read_failed',
                    'document_id': str(pk),
                    'error_type': type(e).__name__,
                }
            )
            return error_response(e)

        serializer = DocumentDetailSerializer(document, context={'payload': payload})
        return Response(serializer.data)

    def destroy(self, request, pk=None):
        document = self.get_object()
        detach = request.query_params.get('detach_contractors', '').lower() in ('1', 'true', 'yes')
        try:
            services.delete_document(document.pk, detach_contractors=detach)
        except (ObjectDoesNotExist, ValidationError,
                MigrationInProgressError, ObjectStoreUnavailableError) as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        return self._transition(request, DocumentStatusChoices.SENT)

    @action(detail=True, methods=['post'])
    def sign(self, request, pk=None):
        return self._transition(request, DocumentStatusChoices.SIGNED)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._transition(request, DocumentStatusChoices.REJECTED)

    def _transition(self, request, new_status):
        document = self.get_object()
        try:
            document = services.transition_status(document.pk, new_status, user=request.user)
        except (ObjectDoesNotExist, ValidationError) as e:
            return error_response(e)

        document = Document.objects.prefetch_related('events').get(pk=document.pk)
        return Response(DocumentDetailSerializer(document).data, status=status.HTTP_200_OK)


class PatientDocumentListView(generics.ListAPIView):
    """
    Documents addressed to the authenticated patient.

    GET /patient/documents/?clinic_name=...
    GET /patient/clinics/{clinic_id}/documents/
    """
    serializer_class = DocumentSerializer
    pagination_class = DocumentPagination
    permission_classes = [IsPatientUser]

    def get_queryset(self):
        queryset = Document.objects.received_by(self.request.user.phone_number)
        clinic_id = self.kwargs.get('clinic_id')
        if clinic_id is not None:
            queryset = queryset.filter(clinic_id=clinic_id)
        clinic_name = self.request.query_params.get('clinic_name')
        if clinic_name:
            queryset = queryset.sender_clinic_contains(clinic_name)
        return queryset.order_by('-created_at')


class PatientClinicListView(APIView):
    """
    Clinics that sent documents to the authenticated patient,
    most recent interaction first.

    GET /patient/clinics/
    """
    permission_classes = [IsPatientUser]

    def get(self, request):
        interactions = (
            Document.objects.received_by(request.user.phone_number)
            .values('sender_phone_number')
            .annotate(last_interaction=Max('created_at'))
            .order_by('-last_interaction')
        )
        clinics_by_phone = {
            clinic.phone_number: clinic
            for clinic in Clinic.objects.filter(
                phone_number__in=[row['sender_phone_number'] for row in interactions]
            )
        }

        clinics = []
        for row in interactions:
            clinic = clinics_by_phone.get(row['sender_phone_number'])
            if clinic is None:
                continue
            clinics.append({
                'id': clinic.id,
                'clinic_name': clinic.clinic_name,
                'sender_name': clinic.director_full_name,
                'phone_number': clinic.phone_number,
                'last_interaction': row['last_interaction'],
            })

        serializer = PatientClinicSerializer(clinics, many=True)
        return Response({'clinics': serializer.data, 'total_clinics': len(clinics)})
