"""Files serializers."""
from rest_framework import serializers

from .models import ClinicFile


class ClinicFileSerializer(serializers.ModelSerializer):
    clinic_name = serializers.CharField(source='clinic.clinic_name', read_only=True)

    class Meta:
        model = ClinicFile
        fields = [
            'id', 'document_title', 'original_name', 'content_type', 'size_bytes',
            'is_public', 'clinic', 'clinic_name', 'created_at',
        ]
        read_only_fields = fields


class ClinicFileUploadSerializer(serializers.Serializer):
    """Multipart upload into the library. The title defaults to the filename."""
    file = serializers.FileField()
    document_title = serializers.CharField(max_length=255, required=False)
    is_public = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        attrs['document_title'] = attrs.get('document_title') or attrs['file'].name
        return attrs
