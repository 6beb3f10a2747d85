"""
Storage lifecycle scheduler.

Demotes idle documents:
- STANDARD, idle for more than LIFECYCLE_COLD_AFTER_DAYS (but not more
  than LIFECYCLE_ICE_AFTER_DAYS) -> COLD
- STANDARD or COLD, idle for more than LIFECYCLE_ICE_AFTER_DAYS -> ICE

One run per day across all instances: the run is claimed by inserting a
LifecycleRun row with a unique run_key.
"""
import socket
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import log_lifecycle_run

from . import locking, storage
from .exceptions import MigrationInProgressError
from .migration import move_locked, purge_orphaned_objects
from .models import (
    Document,
    LifecycleRun,
    LifecycleRunStatusChoices,
    StorageClassChoices,
)

logger = get_sanitized_logger(__name__)

MIGRATED = 'migrated'
SKIPPED = 'skipped'
FAILED = 'failed'


def lifecycle_cutoffs(now):
    """Return ``(cold_cutoff, ice_cutoff)`` for a run at ``now``."""
    cold_cutoff = now - timedelta(days=settings.LIFECYCLE_COLD_AFTER_DAYS)
    ice_cutoff = now - timedelta(days=settings.LIFECYCLE_ICE_AFTER_DAYS)
    return cold_cutoff, ice_cutoff


def select_cold_candidates(now):
    cold_cutoff, ice_cutoff = lifecycle_cutoffs(now)
    return list(
        Document.objects.in_tiers([StorageClassChoices.STANDARD])
        .idle_since(cold_cutoff)
        .filter(last_accessed__gte=ice_cutoff)
        .values_list('id', flat=True)
    )


def select_ice_candidates(now):
    _, ice_cutoff = lifecycle_cutoffs(now)
    return list(
        Document.objects.in_tiers([StorageClassChoices.STANDARD, StorageClassChoices.COLD])
        .idle_since(ice_cutoff)
        .values_list('id', flat=True)
    )


def claim_run(now, force=False):
    """
    Insert the LifecycleRun row for this tick.

    Returns:
        LifecycleRun, or None when another instance already owns the run
    """
    run_key = now.strftime('%Y-%m-%d')
    if force:
        run_key = f"{run_key}-manual-{uuid.uuid4().hex[:8]}"

    try:
        with transaction.atomic():
            return LifecycleRun.objects.create(
                run_key=run_key,
                hostname=socket.gethostname(),
                started_at=now,
            )
    except IntegrityError:
        logger.info(
            'Lifecycle run already claimed',
            extra={'event': 'lifecycle_run_skipped', 'run_key': run_key}
        )
        return None


def demote_document(document_id, target_tier, cutoff, store=None):
    """
    Demote one candidate if it is still eligible.

    Eligibility is re-checked under the document lock: the document may
    have been read or moved since it was selected.

    Returns:
        MIGRATED, SKIPPED or FAILED
    """
    try:
        with locking.document_lock(document_id, caller='lifecycle') as token:
            document = Document.objects.get(pk=document_id)
            eligible_tiers = (
                [StorageClassChoices.STANDARD]
                if target_tier == StorageClassChoices.COLD
                else [StorageClassChoices.STANDARD, StorageClassChoices.COLD]
            )
            if document.storage_class not in eligible_tiers or document.last_accessed >= cutoff:
                return SKIPPED
            move_locked(document, target_tier, token, store=store)
            return MIGRATED
    except (MigrationInProgressError, ObjectDoesNotExist):
        return SKIPPED
    except Exception as e:
        logger.error(
            'Lifecycle migration failed',
            extra={
                'event': 'lifecycle_document_failed',
                'document_id': str(document_id),
                'target_tier': target_tier,
                'error_type': type(e).__name__,
                'error': str(e),
            },
            exc_info=True,
        )
        metrics.exceptions_total.labels(
            exception_type=type(e).__name__,
            location='documents.lifecycle'
        ).inc()
        return FAILED


def run_storage_lifecycle(now=None, store=None, force=False):
    """
    Run one lifecycle scan.

    Args:
        now: Reference time (default: timezone.now())
        store: ObjectStore (default: process-wide client)
        force: Run even if today's run was already claimed

    Returns:
        The finished LifecycleRun, or None if this tick was skipped
    """
    now = now or timezone.now()
    store = store or storage.get_object_store()

    run = claim_run(now, force=force)
    if run is None:
        metrics.lifecycle_runs_total.labels(result='skipped').inc()
        return None

    log_lifecycle_run(run, result='started')
    try:
        _scan(run, now, store)
    except Exception as e:
        run.status = LifecycleRunStatusChoices.FAILED
        run.error = str(e)
        run.finished_at = timezone.now()
        run.save()
        metrics.lifecycle_runs_total.labels(result='failure').inc()
        log_lifecycle_run(run, result='failure', error=str(e))
        raise

    run.status = LifecycleRunStatusChoices.COMPLETED
    run.finished_at = timezone.now()
    run.save()
    metrics.lifecycle_runs_total.labels(result='success').inc()
    log_lifecycle_run(run, result='success')
    return run


@metrics.track_duration(metrics.lifecycle_run_duration_seconds)
def _scan(run, now, store):
    cold_cutoff, ice_cutoff = lifecycle_cutoffs(now)
    run.orphans_purged = purge_orphaned_objects(store=store)

    # Materialise both lists first so a document is visited once per run.
    cold_ids = select_cold_candidates(now)
    ice_ids = select_ice_candidates(now)

    for target_tier, cutoff, ids, counter in (
        (StorageClassChoices.COLD, cold_cutoff, cold_ids, 'cold_migrated'),
        (StorageClassChoices.ICE, ice_cutoff, ice_ids, 'ice_migrated'),
    ):
        for document_id in ids:
            outcome = demote_document(document_id, target_tier, cutoff, store=store)
            metrics.lifecycle_documents_total.labels(
                target_tier=target_tier, result=outcome
            ).inc()
            if outcome == MIGRATED:
                setattr(run, counter, getattr(run, counter) + 1)
            elif outcome == SKIPPED:
                run.skipped += 1
            else:
                run.failed += 1
