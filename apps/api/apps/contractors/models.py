"""
Contractors models: clinic-owned registry of document recipients.
"""
import uuid
from django.db import models

from apps.core.models import phone_number_validator


class Contractor(models.Model):
    """
    A recipient the clinic has sent documents to.

    Created automatically on first document for a phone number, or
    manually from the clinic UI. Phone numbers are unique per clinic.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    clinic = models.ForeignKey(
        'core.Clinic',
        on_delete=models.CASCADE,
        related_name='contractors'
    )
    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    fathers_name = models.CharField(max_length=100, blank=True, default='')
    phone_number = models.CharField(max_length=11, validators=[phone_number_validator])
    documents = models.ManyToManyField(
        'documents.Document',
        blank=True,
        related_name='contractors'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'contractor'
        ordering = ['last_name', 'first_name']
        verbose_name = 'Contractor'
        verbose_name_plural = 'Contractors'
        constraints = [
            models.UniqueConstraint(
                fields=['clinic', 'phone_number'],
                name='uniq_contractor_clinic_phone'
            ),
        ]
        indexes = [
            models.Index(fields=['clinic', 'phone_number'], name='idx_contractor_phone'),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.phone_number})"

    @property
    def full_name(self):
        return ' '.join(part for part in (self.last_name, self.first_name, self.fathers_name) if part)
