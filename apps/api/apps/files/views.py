"""Files views."""
from rest_framework import mixins, status, viewsets
from rest_framework.response import Response

from apps.authz.permissions import IsClinicUser
from apps.documents.exceptions import ObjectStoreUnavailableError
from apps.documents.views import error_response

from . import services
from .models import ClinicFile
from .serializers import ClinicFileSerializer, ClinicFileUploadSerializer


class ClinicFileViewSet(mixins.ListModelMixin,
                        mixins.CreateModelMixin,
                        mixins.DestroyModelMixin,
                        viewsets.GenericViewSet):
    """
    The clinic's file library.

    Endpoints:
    - GET    /files/?document_title=...  - own and public files
    - POST   /files/                     - multipart upload (file, document_title, is_public)
    - DELETE /files/{id}/                - delete an own file
    """
    serializer_class = ClinicFileSerializer
    permission_classes = [IsClinicUser]
    pagination_class = None

    def get_queryset(self):
        clinic = self.request.user.clinic
        if self.action == 'destroy':
            return ClinicFile.objects.filter(clinic=clinic)
        queryset = ClinicFile.objects.visible_to(clinic).select_related('clinic')
        title = self.request.query_params.get('document_title')
        if title:
            queryset = queryset.filter(document_title__icontains=title)
        return queryset

    def create(self, request):
        serializer = ClinicFileUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        upload = data['file']

        try:
            clinic_file = services.upload_file(
                clinic=request.user.clinic,
                document_title=data['document_title'],
                payload=upload.read(),
                content_type=getattr(upload, 'content_type', None) or 'application/octet-stream',
                filename=upload.name,
                is_public=data['is_public'],
                created_by=request.user,
            )
        except ObjectStoreUnavailableError as e:
            return error_response(e)

        return Response(ClinicFileSerializer(clinic_file).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        services.delete_file(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)
