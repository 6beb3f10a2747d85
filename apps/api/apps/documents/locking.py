"""
Per-document migration lock.

The lock is a compare-and-swap on ``Document.migration_in_progress``
persisted with the record, so it survives worker restarts. A lock older
than DOCUMENT_LOCK_TTL_SECONDS is considered abandoned and may be taken
over. Writes made under the lock are conditional on the owner's token.
"""
import time
import uuid
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from apps.core.observability import get_sanitized_logger, metrics

from .exceptions import DocumentNotFoundError, MigrationInProgressError
from .models import Document

logger = get_sanitized_logger(__name__)


def try_acquire(document_id):
    """
    Attempt to take the lock once.

    Returns:
        The lock token on success, None if another owner holds it.

    Raises:
        DocumentNotFoundError: the document does not exist.
    """
    now = timezone.now()
    stale_before = now - timedelta(seconds=settings.DOCUMENT_LOCK_TTL_SECONDS)
    token = uuid.uuid4()

    updated = Document.objects.filter(id=document_id).filter(
        Q(migration_in_progress=False) | Q(migration_started_at__lt=stale_before)
    ).update(
        migration_in_progress=True,
        migration_token=token,
        migration_started_at=now,
    )
    if updated == 1:
        return token

    if not Document.objects.filter(id=document_id).exists():
        raise DocumentNotFoundError(f"Document {document_id} not found")
    return None


def release(document_id, token):
    """Release the lock if ``token`` still owns it."""
    released = Document.objects.filter(id=document_id, migration_token=token).update(
        migration_in_progress=False,
        migration_token=None,
        migration_started_at=None,
    )
    if not released and Document.objects.filter(id=document_id).exists():
        logger.warning(
            'Migration lock lost before release',
            extra={'event': 'document_lock_lost', 'document_id': str(document_id)}
        )


def update_locked(document_id, token, **fields):
    """
    Persist ``fields`` only while ``token`` owns the lock.

    Returns True when the row was written.
    """
    fields.setdefault('updated_at', timezone.now())
    return Document.objects.filter(id=document_id, migration_token=token).update(**fields) == 1


@contextmanager
def document_lock(document_id, wait=False, caller='migration'):
    """
    Hold the migration lock for the duration of the block.

    Args:
        document_id: Document primary key
        wait: Poll until DOCUMENT_LOCK_WAIT_SECONDS elapse instead of
            failing immediately when the lock is held
        caller: Label for contention metrics

    Yields:
        The lock token

    Raises:
        MigrationInProgressError: the lock could not be taken
        DocumentNotFoundError: the document does not exist
    """
    deadline = time.monotonic() + (settings.DOCUMENT_LOCK_WAIT_SECONDS if wait else 0)
    token = try_acquire(document_id)
    while token is None:
        metrics.document_lock_contention_total.labels(caller=caller).inc()
        if time.monotonic() >= deadline:
            raise MigrationInProgressError(
                document_id,
                retry_after=settings.DOCUMENT_LOCK_POLL_SECONDS
            )
        time.sleep(settings.DOCUMENT_LOCK_POLL_SECONDS)
        token = try_acquire(document_id)

    try:
        yield token
    finally:
        release(document_id, token)
