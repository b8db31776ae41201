"""
OFFLINE App - Celery Tasks

Queue drains run by a worker: the periodic beat entry and on-demand
drains requested through the local API.
"""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(name='offline.tasks.process_offline_queue')
def process_offline_queue(check_connectivity=True):
    """
    Drain the offline queue once.

    Scheduled every OFFLINE_AUTO_SYNC_INTERVAL seconds; skipped while the
    dispatch API is unreachable.
    """
    from offline.runtime import get_runtime

    runtime = get_runtime()
    if check_connectivity and not runtime.connectivity.check():
        logger.info("[SYNC TASK] Dispatch API unreachable - drain skipped")
        return {'started': False, 'online': False}

    try:
        result = runtime.engine.process_queue()
    except Exception as e:
        logger.error(f"[SYNC TASK] Drain failed: {e}")
        return {'started': False, 'error': str(e)}

    if result.started:
        logger.info(
            f"[SYNC TASK] Drain done: {result.processed} synced, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
    return result.to_dict()
