"""
Tier migration engine - moves a document payload between storage tiers.

A move is copy -> delete source -> persist record, in that order, so the
payload is always reachable and the record never points at a bucket that
does not hold the object yet. Moves are idempotent: re-running a move
that crashed half way converges on the same (bucket, storage_class).

Allowed moves:
- demotion: STANDARD -> COLD, COLD -> ICE, STANDARD -> ICE
- promotion: any tier -> STANDARD (read path only)
"""
import time

from django.conf import settings

from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import log_orphaned_object, log_tier_migration

from . import locking, storage
from .exceptions import (
    DocumentNotFoundError,
    InvalidTierMigrationError,
    MigrationInProgressError,
    ObjectNotFoundError,
    ObjectStoreUnavailableError,
)
from .models import TIER_ORDER, Document, OrphanedObject, StorageClassChoices

logger = get_sanitized_logger(__name__)


def validate_tier_move(current_tier, target_tier):
    """
    Check that ``current_tier -> target_tier`` is a demotion, a promotion
    to STANDARD, or a no-op.

    Raises:
        InvalidTierMigrationError: e.g. ICE -> COLD
    """
    if target_tier not in TIER_ORDER:
        raise InvalidTierMigrationError(f'Unknown storage class {target_tier}')
    if target_tier == StorageClassChoices.STANDARD:
        return
    if TIER_ORDER[target_tier] < TIER_ORDER[current_tier]:
        raise InvalidTierMigrationError(
            f'Invalid tier migration from {current_tier} to {target_tier}. '
            f'Only demotions or promotion to {StorageClassChoices.STANDARD} are allowed.'
        )


def migrate_document(document, target_tier, store=None):
    """
    Move ``document``'s payload to ``target_tier``.

    Takes the document's migration lock without waiting.

    Args:
        document: Document instance (reloaded under the lock)
        target_tier: StorageClassChoices value
        store: ObjectStore (default: process-wide client)

    Returns:
        Refreshed Document instance

    Raises:
        MigrationInProgressError: another move holds the lock
        InvalidTierMigrationError: not a demotion or promotion to STANDARD
        ObjectNotFoundError: payload missing from every tier bucket
        ObjectStoreUnavailableError: copy failed or timed out; record untouched
    """
    with locking.document_lock(document.pk, caller='migration') as token:
        locked = Document.objects.get(pk=document.pk)
        return move_locked(locked, target_tier, token, store=store)


def move_locked(document, target_tier, token, store=None):
    """
    Perform the move while the caller holds the lock identified by ``token``.

    ``document`` must have been loaded after the lock was taken.
    """
    store = store or storage.get_object_store()
    validate_tier_move(document.storage_class, target_tier)

    from_tier = document.storage_class
    source_bucket = document.bucket
    destination_bucket = storage.bucket_for_tier(target_tier)
    key = document.object_key
    start_time = time.time()
    result = 'success'

    if source_bucket == destination_bucket:
        result = 'noop'
    else:
        try:
            store.copy(source_bucket, key, destination_bucket)
        except ObjectNotFoundError:
            if not store.exists(destination_bucket, key):
                # An interrupted move may have left the object in a third tier.
                try:
                    repair_locked(document, token, store=store)
                except ObjectNotFoundError:
                    metrics.document_tier_migrations_total.labels(
                        from_tier=from_tier, to_tier=target_tier, result='failure'
                    ).inc()
                    log_tier_migration(document, from_tier, target_tier, result='failure', reason='object_missing')
                    raise
                if target_tier != StorageClassChoices.STANDARD and \
                        TIER_ORDER[document.storage_class] >= TIER_ORDER[target_tier]:
                    return document
                return move_locked(document, target_tier, token, store=store)
            # A previous attempt copied and deleted but crashed before persisting.
            result = 'resumed'
        except ObjectStoreUnavailableError as e:
            metrics.document_tier_migrations_total.labels(
                from_tier=from_tier, to_tier=target_tier, result='failure'
            ).inc()
            log_tier_migration(document, from_tier, target_tier, result='failure', error=str(e))
            raise
        else:
            _delete_source(document, source_bucket, key, store)

    if not locking.update_locked(
        document.pk,
        token,
        bucket=destination_bucket,
        storage_class=target_tier,
    ):
        # Lock was taken over (TTL expired); the next holder runs repair_locked.
        raise ObjectStoreUnavailableError(
            f'Migration lock for document {document.pk} expired before the record was persisted'
        )

    # The destination copy is live again; a stale orphan entry must not purge it.
    OrphanedObject.objects.filter(bucket=destination_bucket, object_key=key).delete()

    document.bucket = destination_bucket
    document.storage_class = target_tier

    metrics.document_tier_migrations_total.labels(
        from_tier=from_tier, to_tier=target_tier, result=result
    ).inc()
    metrics.document_tier_migration_duration_seconds.labels(to_tier=target_tier).observe(
        time.time() - start_time
    )
    log_tier_migration(
        document,
        from_tier,
        target_tier,
        result=result,
        duration_ms=int((time.time() - start_time) * 1000),
    )
    return document


def locate_object(document, store):
    """Return the tier bucket holding the document's object (recorded bucket first), or None."""
    key = document.object_key
    if store.exists(document.bucket, key):
        return document.bucket
    for bucket in settings.STORAGE_TIER_BUCKETS.values():
        if bucket != document.bucket and store.exists(bucket, key):
            return bucket
    return None


def repair_locked(document, token, store=None):
    """
    Point the record back at the tier bucket that holds its object.

    A move that deleted its source but never persisted the destination
    (worker crash, or lock lost to a TTL takeover) leaves the record on an
    empty bucket. Must be called while holding the lock identified by
    ``token``; ``document`` is updated in place.

    Returns:
        The document

    Raises:
        ObjectNotFoundError: no tier bucket holds the object
        MigrationInProgressError: the lock was lost
    """
    store = store or storage.get_object_store()
    key = document.object_key
    holder = locate_object(document, store)
    if holder is None:
        logger.error(
            'Document object missing from every tier',
            extra={
                'event': 'document_object_missing',
                'document_id': str(document.pk),
                'bucket': document.bucket,
            }
        )
        raise ObjectNotFoundError(document.bucket, key)

    tier = storage.tier_for_bucket(holder)
    if tier is None or (holder == document.bucket and tier == document.storage_class):
        return document

    if not locking.update_locked(document.pk, token, bucket=holder, storage_class=tier):
        raise MigrationInProgressError(document.pk)
    OrphanedObject.objects.filter(bucket=holder, object_key=key).delete()

    metrics.document_tier_migrations_total.labels(
        from_tier=document.storage_class, to_tier=tier, result='repaired'
    ).inc()
    logger.warning(
        'Document record repaired',
        extra={
            'event': 'document_record_repaired',
            'document_id': str(document.pk),
            'from_bucket': document.bucket,
            'to_bucket': holder,
        }
    )
    document.bucket = holder
    document.storage_class = tier
    return document


def _delete_source(document, source_bucket, key, store):
    """
    Delete the source copy after a confirmed copy.

    A transient failure is accepted: the destination already holds the
    payload, so the source is registered as orphaned and purged by the
    next lifecycle run.
    """
    try:
        store.delete(source_bucket, key)
    except ObjectStoreUnavailableError as e:
        register_orphan(source_bucket, key, document_id=document.pk, error=e)


def register_orphan(bucket, key, document_id=None, error=None):
    """Record an object that must be purged by a later lifecycle run."""
    orphan, _ = OrphanedObject.objects.get_or_create(
        bucket=bucket,
        object_key=key,
        defaults={'document_id': document_id},
    )
    orphan.last_error = str(error or '')
    orphan.save(update_fields=['last_error', 'updated_at'])
    metrics.orphaned_objects_total.labels(result='registered').inc()
    log_orphaned_object(bucket, key, document_id=document_id, error=str(error or ''))
    return orphan


def purge_orphaned_objects(store=None):
    """
    Delete registered orphaned source copies.

    Each purge holds the owning document's lock and skips objects the
    document points at again (e.g. rehydrated back into that bucket).

    Returns:
        Number of objects purged
    """
    store = store or storage.get_object_store()
    purged = 0

    for orphan in OrphanedObject.objects.all():
        try:
            if _purge_one(orphan, store):
                purged += 1
        except MigrationInProgressError:
            logger.info(
                'Orphan purge deferred - document locked',
                extra={'event': 'orphan_purge_deferred', 'orphan_id': str(orphan.id)}
            )
        except ObjectStoreUnavailableError as e:
            orphan.attempts += 1
            orphan.last_error = str(e)
            orphan.save(update_fields=['attempts', 'last_error', 'updated_at'])
            metrics.orphaned_objects_total.labels(result='purge_failed').inc()
            log_orphaned_object(orphan.bucket, orphan.object_key, document_id=orphan.document_id,
                                result='failure', error=str(e))

    return purged


def _purge_one(orphan, store):
    if orphan.document_id is None or not Document.objects.filter(pk=orphan.document_id).exists():
        return _purge_unowned(orphan, store)

    try:
        with locking.document_lock(orphan.document_id, caller='orphan_purge'):
            document = Document.objects.get(pk=orphan.document_id)
            if document.bucket != orphan.bucket or document.object_key != orphan.object_key:
                store.delete(orphan.bucket, orphan.object_key)
                metrics.orphaned_objects_total.labels(result='purged').inc()
                log_orphaned_object(orphan.bucket, orphan.object_key, document_id=orphan.document_id,
                                    result='success')
            orphan.delete()
    except DocumentNotFoundError:
        # Deleted after the ownership check.
        return _purge_unowned(orphan, store)
    return True


def _purge_unowned(orphan, store):
    store.delete(orphan.bucket, orphan.object_key)
    orphan.delete()
    metrics.orphaned_objects_total.labels(result='purged').inc()
    return True
