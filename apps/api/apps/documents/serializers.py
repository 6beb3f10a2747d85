"""Documents serializers."""
import base64

from rest_framework import serializers

from apps.core.models import phone_number_validator

from .models import Document, DocumentEvent


class DocumentEventSerializer(serializers.ModelSerializer):
    event_type_display = serializers.CharField(source='get_event_type_display', read_only=True)

    class Meta:
        model = DocumentEvent
        fields = ['event_type', 'event_type_display', 'timestamp', 'sequence']
        read_only_fields = fields


class DocumentSerializer(serializers.ModelSerializer):
    """
    Document metadata for listings.

    ``document_title`` mirrors ``title`` for clients of the old API.
    """
    document_title = serializers.CharField(read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Document
        fields = [
            'id', 'title', 'document_title',
            'recipient_name', 'recipient_phone_number',
            'sender_clinic_name', 'sender_name', 'sender_phone_number',
            'status', 'status_display', 'date_signed',
            'storage_class', 'content_type', 'size_bytes',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DocumentDetailSerializer(DocumentSerializer):
    """
    Document metadata, event log and (optionally) the payload.

    Pass ``payload`` in the serializer context to embed it as base64.
    """
    events = DocumentEventSerializer(many=True, read_only=True)
    file_data = serializers.SerializerMethodField()

    class Meta(DocumentSerializer.Meta):
        fields = DocumentSerializer.Meta.fields + [
            'bucket', 'object_key', 'sha256', 'last_accessed', 'events', 'file_data',
        ]
        read_only_fields = fields

    def get_file_data(self, obj):
        payload = self.context.get('payload')
        if payload is None:
            return None
        return base64.b64encode(payload).decode('ascii')


class DocumentUploadSerializer(serializers.Serializer):
    """
    Create a prepared document from a multipart upload or a library file.

    Without ``file`` the library file is taken from ``file_id`` or looked
    up by the title.
    """
    file = serializers.FileField(required=False)
    file_id = serializers.UUIDField(required=False)
    title = serializers.CharField(max_length=255, required=False)
    document_title = serializers.CharField(max_length=255, required=False)
    recipient_name = serializers.CharField(max_length=255)
    recipient_phone_number = serializers.CharField(
        max_length=11,
        validators=[phone_number_validator]
    )

    def validate(self, attrs):
        title = attrs.get('title') or attrs.get('document_title')
        if not title and (attrs.get('file') or not attrs.get('file_id')):
            raise serializers.ValidationError({'title': 'This field is required.'})
        attrs['title'] = title
        return attrs


class PatientClinicSerializer(serializers.Serializer):
    """Clinic a patient has received documents from."""
    id = serializers.UUIDField(allow_null=True)
    clinic_name = serializers.CharField()
    sender_name = serializers.CharField()
    phone_number = serializers.CharField()
    last_interaction = serializers.DateTimeField()
