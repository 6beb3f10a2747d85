"""
Files models: the clinic's template library.
"""
import uuid
from django.conf import settings
from django.db import models
from django.db.models import Q


class ClinicFileQuerySet(models.QuerySet):

    def visible_to(self, clinic):
        """The clinic's own files plus files other clinics shared publicly."""
        return self.filter(Q(clinic=clinic) | Q(is_public=True))


class ClinicFile(models.Model):
    """
    A reusable file (contract, consent form) a clinic sends from.

    Library files live in the STANDARD bucket under ``files/`` and are
    never tiered. Sending one copies its bytes into a new Document, so
    deleting the library entry does not affect documents already sent.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    clinic = models.ForeignKey(
        'core.Clinic',
        on_delete=models.CASCADE,
        related_name='files'
    )
    document_title = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255, blank=True, default='')
    bucket = models.CharField(max_length=63)
    object_key = models.CharField(max_length=512, unique=True)
    content_type = models.CharField(max_length=100, default='application/octet-stream')
    size_bytes = models.BigIntegerField(default=0)
    is_public = models.BooleanField(default=False)
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='library_files'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClinicFileQuerySet.as_manager()

    class Meta:
        db_table = 'clinic_file'
        ordering = ['-created_at']
        verbose_name = 'Library file'
        verbose_name_plural = 'Library files'
        indexes = [
            models.Index(fields=['clinic', 'document_title'], name='idx_clinic_file_title'),
            models.Index(fields=['is_public'], name='idx_clinic_file_public'),
        ]

    def __str__(self):
        return self.document_title
