"""
Celery tasks for the document storage lifecycle.
"""
from celery import shared_task

from apps.core.observability import get_sanitized_logger
from apps.core.observability.correlation import clear_request_context, set_request_context

logger = get_sanitized_logger(__name__)


@shared_task(name='apps.documents.tasks.run_storage_lifecycle')
def run_storage_lifecycle(force=False):
    """
    Scheduled storage lifecycle run (Celery beat, daily).

    Args:
        force: Run even if today's run was already claimed

    Returns:
        Summary dict of the run, or None when another instance owns it
    """
    from .lifecycle import run_storage_lifecycle as run_lifecycle

    set_request_context(request_id=f'lifecycle-{run_storage_lifecycle.request.id or "local"}')
    try:
        run = run_lifecycle(force=force)
    finally:
        clear_request_context()

    if run is None:
        return None
    return {
        'run_key': run.run_key,
        'status': run.status,
        'cold_migrated': run.cold_migrated,
        'ice_migrated': run.ice_migrated,
        'skipped': run.skipped,
        'failed': run.failed,
        'orphans_purged': run.orphans_purged,
    }
