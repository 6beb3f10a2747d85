"""Contractors serializers."""
from rest_framework import serializers

from apps.documents.serializers import DocumentSerializer

from .models import Contractor


class ContractorSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Contractor
        fields = [
            'id', 'first_name', 'last_name', 'fathers_name', 'full_name',
            'phone_number', 'created_at'
        ]
        read_only_fields = ['id', 'full_name', 'created_at']
        extra_kwargs = {
            'first_name': {'required': True, 'allow_blank': False},
            'last_name': {'required': True, 'allow_blank': False},
        }

    def validate_phone_number(self, value):
        """Phone numbers are unique within the clinic."""
        clinic = self.context['request'].user.clinic
        existing = Contractor.objects.filter(clinic=clinic, phone_number=value)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise serializers.ValidationError('A contractor with this phone number already exists.')
        return value


class ContractorDocumentsSerializer(serializers.Serializer):
    contractor = ContractorSerializer()
    documents = DocumentSerializer(many=True)
