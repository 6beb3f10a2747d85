"""
Domain events logging helpers.

Provides structured event logging for document storage and signing
operations.
"""
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'document_tier_migrated')
        entity_type: Type of entity (e.g., 'Document', 'LifecycleRun')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, skipped, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'document_tier_migrated',
            entity_type='Document',
            entity_id=str(document.id),
            result='success',
            from_tier='STANDARD',
            to_tier='COLD',
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict', 'skipped']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_tier_migration(document, from_tier, to_tier, result='success', **extra):
    """Log a payload move between storage tiers."""
    log_domain_event(
        'document_tier_migrated',
        entity_type='Document',
        entity_id=str(document.id),
        result=result,
        from_tier=from_tier,
        to_tier=to_tier,
        bucket=document.bucket,
        object_key=document.object_key,
        **extra
    )


def log_status_transition(document, from_status, to_status, result='success', **extra):
    """Log a signing status transition."""
    log_domain_event(
        'document_status_transition',
        entity_type='Document',
        entity_id=str(document.id),
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_orphaned_object(bucket, object_key, document_id=None, result='warning', **extra):
    """Log a source copy left behind (or purged) after a tier move."""
    log_domain_event(
        'document_orphaned_object',
        entity_type='OrphanedObject',
        entity_id=str(document_id) if document_id else None,
        result=result,
        bucket=bucket,
        object_key=object_key,
        **extra
    )


def log_lifecycle_run(run, result='success', run_key=None, **extra):
    """Log completion (or skip) of a storage lifecycle run."""
    log_domain_event(
        'storage_lifecycle_run',
        entity_type='LifecycleRun',
        entity_id=str(run.id) if run is not None else None,
        result=result,
        run_key=run.run_key if run is not None else run_key,
        **extra
    )
