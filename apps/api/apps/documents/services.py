"""
Documents service layer - create, read, sign and delete documents.

Payload bytes live in the object store, metadata and the status event
log in the database. No database transaction is held across an object
store call.
"""
import hashlib
import time
from typing import Optional, Tuple

from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.contractors.services import (
    add_document_to_contractor,
    check_recipient_name,
    detach_document,
)
from apps.core.models import phone_number_validator
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import log_status_transition

from . import locking, storage
from .exceptions import (
    DeletionConflictError,
    DocumentNotFoundError,
    InvalidTransitionError,
    ObjectStoreUnavailableError,
)
from .migration import register_orphan
from .models import (
    DELETABLE_STATUSES,
    Document,
    DocumentEvent,
    DocumentStatusChoices,
    StorageClassChoices,
)
from .rehydration import ensure_hot

logger = get_sanitized_logger(__name__)


def create_document(
    clinic,
    title: str,
    recipient_name: str,
    recipient_phone_number: str,
    payload: bytes,
    content_type: str = 'application/octet-stream',
    filename: Optional[str] = None,
    created_by=None,
    store=None,
) -> Document:
    """
    Upload a payload to the STANDARD tier and create the document record.

    The new document starts in ``prepared`` with a single prepared event
    and is linked to the clinic's contractor for the recipient phone.

    Raises:
        ValidationError: invalid phone number or contractor name mismatch
        ObjectStoreUnavailableError: upload failed; nothing was created
    """
    phone_number_validator(recipient_phone_number)
    check_recipient_name(clinic, recipient_name, recipient_phone_number)

    store = store or storage.get_object_store()
    bucket = storage.bucket_for_tier(StorageClassChoices.STANDARD)
    object_key = storage.generate_object_key(clinic.storage_folder, filename or '')

    try:
        store.put(bucket, object_key, payload, content_type=content_type)
    except Exception:
        metrics.documents_created_total.labels(result='failure').inc()
        raise

    try:
        with transaction.atomic():
            now = timezone.now()
            document = Document.objects.create(
                title=title,
                recipient_name=recipient_name,
                recipient_phone_number=recipient_phone_number,
                sender_clinic_name=clinic.clinic_name,
                sender_name=clinic.director_full_name,
                sender_phone_number=clinic.phone_number,
                clinic=clinic,
                created_by_user=created_by,
                bucket=bucket,
                object_key=object_key,
                content_type=content_type,
                size_bytes=len(payload),
                sha256=hashlib.sha256(payload).hexdigest(),
                storage_class=StorageClassChoices.STANDARD,
                last_accessed=now,
                status=DocumentStatusChoices.PREPARED,
            )
            DocumentEvent.objects.create(
                document=document,
                event_type=DocumentStatusChoices.PREPARED,
                timestamp=now,
                sequence=1,
            )
            add_document_to_contractor(clinic, recipient_name, recipient_phone_number, document)
    except Exception:
        # The record was rolled back; do not leave the upload behind.
        discard_upload(bucket, object_key, store)
        metrics.documents_created_total.labels(result='failure').inc()
        raise

    metrics.documents_created_total.labels(result='success').inc()
    log_domain_event(
        'document_created',
        entity_type='Document',
        entity_id=str(document.id),
        result='success',
        clinic_id=str(clinic.id),
        size_bytes=document.size_bytes,
    )
    return document


def discard_upload(bucket, object_key, store):
    """Remove an upload whose record was never committed."""
    try:
        store.delete(bucket, object_key)
        return
    except ObjectStoreUnavailableError as e:
        error = e
    try:
        register_orphan(bucket, object_key, error=error)
    except DatabaseError:
        logger.error(
            'Upload left behind after failed document creation',
            extra={'event': 'document_upload_leaked', 'bucket': bucket, 'object_key': object_key},
            exc_info=True,
        )


def get_document_payload(document_id, store=None) -> Tuple[Document, bytes]:
    """
    Read a document's payload, rehydrating it to STANDARD first.

    Returns:
        (Document, payload bytes)

    Raises:
        DocumentNotFoundError
        MigrationInProgressError: lock still held after the wait
        ObjectNotFoundError / ObjectStoreUnavailableError
    """
    store = store or storage.get_object_store()
    document = ensure_hot(document_id, store=store)
    return document, store.get(document.bucket, document.object_key)


def transition_status(document_id, new_status, user=None) -> Document:
    """
    Move a document to ``new_status`` and append the matching event.

    Raises:
        DocumentNotFoundError
        InvalidTransitionError
    """
    start_time = time.time()

    with transaction.atomic():
        try:
            document = Document.objects.select_for_update().get(pk=document_id)
        except Document.DoesNotExist:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        from_status = document.status
        try:
            document.append_event(new_status)
        except InvalidTransitionError:
            metrics.document_transitions_total.labels(
                from_status=from_status, to_status=new_status, result='invalid'
            ).inc()
            log_status_transition(document, from_status, new_status, result='blocked')
            raise

        document.save(update_fields=['status', 'date_signed', 'updated_at'])

    metrics.document_transitions_total.labels(
        from_status=from_status, to_status=new_status, result='success'
    ).inc()
    log_status_transition(
        document,
        from_status,
        new_status,
        user_id=str(user.id) if user is not None else None,
        duration_ms=int((time.time() - start_time) * 1000),
    )
    return document


def delete_document(document_id, detach_contractors: bool = False, store=None) -> None:
    """
    Delete a document and its payload.

    Only ``prepared`` and ``rejected`` documents may be deleted. A document
    referenced by contractors is kept unless ``detach_contractors`` is set.
    The record is deleted before the object; an object delete that fails
    afterwards is registered as orphaned and purged by the lifecycle run.

    Raises:
        DocumentNotFoundError
        DeletionConflictError: status or contractor references forbid it
        MigrationInProgressError: lock still held after the wait
    """
    store = store or storage.get_object_store()

    with locking.document_lock(document_id, wait=True, caller='delete'):
        document = Document.objects.get(pk=document_id)

        if not document.is_deletable:
            metrics.documents_deleted_total.labels(result='conflict').inc()
            raise DeletionConflictError(
                f'Document in status {document.status} cannot be deleted. '
                f'Allowed statuses: {", ".join(DELETABLE_STATUSES)}'
            )

        if document.contractors.exists() and not detach_contractors:
            metrics.documents_deleted_total.labels(result='conflict').inc()
            raise DeletionConflictError(
                'Document is referenced by contractors; '
                'pass detach_contractors to remove the references'
            )

        with transaction.atomic():
            detached = detach_document(document)
            document.delete()

        # The record is gone; a failed object delete is left to the orphan purge.
        try:
            store.delete(document.bucket, document.object_key)
        except ObjectStoreUnavailableError as e:
            register_orphan(document.bucket, document.object_key, document_id=document_id, error=e)

    metrics.documents_deleted_total.labels(result='success').inc()
    log_domain_event(
        'document_deleted',
        entity_type='Document',
        entity_id=str(document_id),
        result='success',
        bucket=document.bucket,
        contractors_detached=detached,
    )
