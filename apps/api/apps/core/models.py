"""
Core models: clinic (tenant)
"""
import uuid
from django.core.validators import RegexValidator
from django.db import models


phone_number_validator = RegexValidator(
    regex=r'^7\d{10}$',
    message='Phone number must start with 7 and contain 11 digits.'
)


class Clinic(models.Model):
    """
    Clinic tenant. Every sent document belongs to exactly one clinic.

    Fields:
    - id: UUID PK
    - clinic_name
    - first_name, last_name, fathers_name: executive director
    - phone_number: unique, 7XXXXXXXXXX
    - email: nullable
    - is_active: bool default true
    - created_at, updated_at
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    clinic_name = models.CharField(max_length=255)
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    fathers_name = models.CharField(max_length=150, blank=True, default='')
    phone_number = models.CharField(
        max_length=11,
        unique=True,
        validators=[phone_number_validator]
    )
    email = models.EmailField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'clinic'
        verbose_name = 'Clinic'
        verbose_name_plural = 'Clinics'
        ordering = ['clinic_name']
        indexes = [
            models.Index(fields=['phone_number'], name='idx_clinic_phone'),
            models.Index(fields=['is_active'], name='idx_clinic_active'),
        ]

    def __str__(self):
        return self.clinic_name

    @property
    def director_full_name(self):
        """Director name in 'Last First Fathers' order, as printed on documents."""
        parts = [self.last_name, self.first_name, self.fathers_name]
        return ' '.join(part for part in parts if part)

    @property
    def storage_folder(self):
        """Object key prefix for this clinic's documents."""
        return f"{self.clinic_name.replace(' ', '_')}_documents"
