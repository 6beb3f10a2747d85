"""
Documents models: document, document_event, lifecycle_run, orphaned_object

A Document's payload lives in exactly one storage tier bucket at a time.
Tier moves are serialized per document through the persisted
``migration_in_progress`` flag (see apps.documents.locking).
"""
import uuid
from django.conf import settings
from django.db import models
from django.db.models import Max, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .exceptions import InvalidTransitionError


class StorageClassChoices(models.TextChoices):
    """
    Storage tiers, hottest first.

    Scheduled migration only moves towards ICE; only the read path
    promotes back to STANDARD.
    """
    STANDARD = 'STANDARD', _('Standard')
    COLD = 'COLD', _('Cold')
    ICE = 'ICE', _('Ice')


TIER_ORDER = {
    StorageClassChoices.STANDARD: 0,
    StorageClassChoices.COLD: 1,
    StorageClassChoices.ICE: 2,
}


class DocumentStatusChoices(models.TextChoices):
    """
    Signing status with state machine.

    Transitions:
    - prepared -> sent
    - sent -> signed, rejected
    - signed -> (terminal)
    - rejected -> (terminal)
    """
    PREPARED = 'prepared', 'Подготовлен'
    SENT = 'sent', 'Отправлен'
    SIGNED = 'signed', 'Подписан'
    REJECTED = 'rejected', 'Отклонён'


DELETABLE_STATUSES = (DocumentStatusChoices.PREPARED, DocumentStatusChoices.REJECTED)


class DocumentQuerySet(models.QuerySet):
    """Filters used by the API listings and the lifecycle scheduler."""

    def sent_by(self, phone_number):
        return self.filter(sender_phone_number=phone_number)

    def received_by(self, phone_number):
        return self.filter(recipient_phone_number=phone_number)

    def with_statuses(self, statuses):
        return self.filter(status__in=statuses)

    def recipient_name_contains(self, text):
        return self.filter(recipient_name__icontains=text)

    def recipient_phone_contains(self, text):
        return self.filter(recipient_phone_number__icontains=text)

    def sender_clinic_contains(self, text):
        return self.filter(sender_clinic_name__icontains=text)

    def created_between(self, start=None, end=None):
        qs = self
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lte=end)
        return qs

    def in_tiers(self, tiers):
        return self.filter(storage_class__in=tiers)

    def idle_since(self, cutoff):
        """Documents not read since ``cutoff`` (exclusive)."""
        return self.filter(last_accessed__lt=cutoff)


class Document(models.Model):
    """
    A document sent by a clinic to a recipient for signing.

    Storage fields:
    - bucket, object_key: current payload location
    - storage_class: STANDARD|COLD|ICE, must match the bucket's tier
    - last_accessed: creation time or last successful payload read

    Lock fields (compare-and-swap, survive restarts):
    - migration_in_progress, migration_token, migration_started_at

    Signing fields:
    - status, date_signed, events (DocumentEvent, append-only)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)

    # Immutable after creation
    recipient_name = models.CharField(max_length=255)
    recipient_phone_number = models.CharField(max_length=11)
    sender_clinic_name = models.CharField(max_length=255)
    sender_name = models.CharField(max_length=255)
    sender_phone_number = models.CharField(max_length=11)
    clinic = models.ForeignKey(
        'core.Clinic',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='documents'
    )
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_documents'
    )

    # Storage
    bucket = models.CharField(max_length=63)
    object_key = models.CharField(max_length=512)
    content_type = models.CharField(max_length=128, default='application/octet-stream')
    size_bytes = models.BigIntegerField(default=0)
    sha256 = models.CharField(max_length=64, blank=True, null=True)
    storage_class = models.CharField(
        max_length=16,
        choices=StorageClassChoices.choices,
        default=StorageClassChoices.STANDARD
    )
    last_accessed = models.DateTimeField(default=timezone.now)

    # Per-document migration lock
    migration_in_progress = models.BooleanField(default=False)
    migration_token = models.UUIDField(blank=True, null=True)
    migration_started_at = models.DateTimeField(blank=True, null=True)

    # Signing lifecycle
    status = models.CharField(
        max_length=16,
        choices=DocumentStatusChoices.choices,
        default=DocumentStatusChoices.PREPARED
    )
    date_signed = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DocumentQuerySet.as_manager()

    class Meta:
        db_table = 'document'
        ordering = ['-created_at']
        verbose_name = 'Document'
        verbose_name_plural = 'Documents'
        indexes = [
            models.Index(fields=['sender_phone_number', '-created_at'], name='idx_document_sender'),
            models.Index(fields=['recipient_phone_number', '-created_at'], name='idx_document_recipient'),
            models.Index(fields=['status'], name='idx_document_status'),
            models.Index(fields=['storage_class', 'last_accessed'], name='idx_document_tier_access'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(migration_in_progress=False) | Q(migration_token__isnull=False),
                name='document_lock_has_token'
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.get_status_display()})"

    @property
    def document_title(self):
        return self.title

    @property
    def is_terminal_status(self):
        return self.status in [DocumentStatusChoices.SIGNED, DocumentStatusChoices.REJECTED]

    @property
    def is_deletable(self):
        return self.status in DELETABLE_STATUSES

    @classmethod
    def get_valid_transitions(cls):
        """
        Get valid status transitions.

        Returns dict: {current_status: [allowed_next_statuses]}
        """
        return {
            DocumentStatusChoices.PREPARED: [DocumentStatusChoices.SENT],
            DocumentStatusChoices.SENT: [DocumentStatusChoices.SIGNED, DocumentStatusChoices.REJECTED],
            DocumentStatusChoices.SIGNED: [],    # Terminal
            DocumentStatusChoices.REJECTED: [],  # Terminal
        }

    def can_transition_to(self, new_status):
        return new_status in self.get_valid_transitions().get(self.status, [])

    def append_event(self, event_type, timestamp=None):
        """
        Append a status event and move ``status`` to it.

        The caller persists the document (``save``) inside the same
        transaction, with the row locked.

        Raises:
            InvalidTransitionError: ``event_type`` is not a successor of
                the current status.
        """
        if not self.can_transition_to(event_type):
            valid = self.get_valid_transitions().get(self.status, [])
            raise InvalidTransitionError(
                f'Invalid transition from {self.status} to {event_type}. '
                f'Valid transitions: {", ".join(valid) if valid else "none (terminal state)"}'
            )

        timestamp = timestamp or timezone.now()
        last = self.events.aggregate(
            last_sequence=Max('sequence'),
            last_timestamp=Max('timestamp'),
        )
        # Keep the log non-decreasing even if the wall clock stepped back.
        if last['last_timestamp'] and timestamp < last['last_timestamp']:
            timestamp = last['last_timestamp']

        event = DocumentEvent.objects.create(
            document=self,
            event_type=event_type,
            timestamp=timestamp,
            sequence=(last['last_sequence'] or 0) + 1,
        )

        self.status = event_type
        if event_type == DocumentStatusChoices.SIGNED:
            self.date_signed = timestamp
        return event


class DocumentEvent(models.Model):
    """Immutable signing lifecycle event."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='events'
    )
    event_type = models.CharField(max_length=16, choices=DocumentStatusChoices.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    sequence = models.PositiveIntegerField()

    class Meta:
        db_table = 'document_event'
        ordering = ['document', 'sequence']
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'sequence'],
                name='uniq_document_event_sequence'
            ),
        ]

    def __str__(self):
        return f"{self.get_event_type_display()} @ {self.timestamp.isoformat()}"


class LifecycleRunStatusChoices(models.TextChoices):
    RUNNING = 'running', _('Running')
    COMPLETED = 'completed', _('Completed')
    FAILED = 'failed', _('Failed')


class LifecycleRun(models.Model):
    """
    One storage lifecycle scan.

    ``run_key`` is unique: the instance that inserts the row owns the
    run, every other instance skips it.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    run_key = models.CharField(max_length=64, unique=True)
    hostname = models.CharField(max_length=255, blank=True, default='')
    status = models.CharField(
        max_length=16,
        choices=LifecycleRunStatusChoices.choices,
        default=LifecycleRunStatusChoices.RUNNING
    )
    started_at = models.DateTimeField(default=timezone.now)
    finished_at = models.DateTimeField(blank=True, null=True)
    cold_migrated = models.PositiveIntegerField(default=0)
    ice_migrated = models.PositiveIntegerField(default=0)
    skipped = models.PositiveIntegerField(default=0)
    failed = models.PositiveIntegerField(default=0)
    orphans_purged = models.PositiveIntegerField(default=0)
    error = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'document_lifecycle_run'
        ordering = ['-started_at']

    def __str__(self):
        return f"Lifecycle run {self.run_key} ({self.status})"


class OrphanedObject(models.Model):
    """
    A source copy left behind when the delete step of a tier move failed.

    ``document_id`` is not a foreign key: the row outlives
    the document so the object can still be purged.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    bucket = models.CharField(max_length=63)
    object_key = models.CharField(max_length=512)
    document_id = models.UUIDField(blank=True, null=True)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'document_orphaned_object'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['bucket', 'object_key'],
                name='uniq_orphaned_object_location'
            ),
        ]

    def __str__(self):
        return f"{self.bucket}/{self.object_key}"
