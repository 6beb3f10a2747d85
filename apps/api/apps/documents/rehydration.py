"""
Access-triggered rehydration.

Every payload read goes through ``ensure_hot``: it promotes a COLD/ICE
document back to STANDARD and refreshes ``last_accessed`` so the
scheduler's idle clock restarts.
"""
from django.utils import timezone

from apps.core.observability import get_sanitized_logger, metrics

from . import locking, storage
from .exceptions import (
    DocumentNotFoundError,
    MigrationInProgressError,
    ObjectNotFoundError,
    ObjectStoreUnavailableError,
)
from .migration import move_locked, repair_locked
from .models import Document, StorageClassChoices

logger = get_sanitized_logger(__name__)


def ensure_hot(document_id, store=None):
    """
    Make sure a document's payload sits in the STANDARD tier.

    Waits for an in-flight migration (bounded by DOCUMENT_LOCK_WAIT_SECONDS)
    before giving up. A record left on an emptied bucket by an interrupted
    move is re-pointed at the tier that holds the object first.

    Args:
        document_id: Document primary key
        store: ObjectStore (default: process-wide client)

    Returns:
        Fresh Document instance with storage_class STANDARD

    Raises:
        DocumentNotFoundError: no such document
        MigrationInProgressError: lock still held after the wait
        ObjectNotFoundError / ObjectStoreUnavailableError: promotion failed;
            the record and last_accessed are left unchanged
    """
    store = store or storage.get_object_store()

    with locking.document_lock(document_id, wait=True, caller='rehydration') as token:
        try:
            document = Document.objects.get(pk=document_id)
        except Document.DoesNotExist:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        from_tier = document.storage_class
        try:
            repair_locked(document, token, store=store)
            if document.storage_class != StorageClassChoices.STANDARD:
                move_locked(document, StorageClassChoices.STANDARD, token, store=store)
        except (ObjectNotFoundError, ObjectStoreUnavailableError):
            metrics.document_rehydrations_total.labels(from_tier=from_tier, result='failure').inc()
            raise

        if from_tier != StorageClassChoices.STANDARD:
            metrics.document_rehydrations_total.labels(from_tier=from_tier, result='success').inc()
            logger.info(
                'Document rehydrated',
                extra={
                    'event': 'document_rehydrated',
                    'document_id': str(document.pk),
                    'from_tier': from_tier,
                }
            )

        now = timezone.now()
        if not locking.update_locked(document.pk, token, last_accessed=now):
            raise MigrationInProgressError(document.pk)
        document.last_accessed = now

    document.migration_in_progress = False
    document.migration_token = None
    document.migration_started_at = None
    return document
