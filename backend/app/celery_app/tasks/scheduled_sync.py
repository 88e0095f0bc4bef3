"""
Scheduled sync tasks — enqueue full syncs for active connections.

Tasks:
- enqueue_scheduled_syncs: beat-driven, once per configured UTC hour
- enqueue_connection_sync: on-demand trigger (API, webhook) for one connection
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.celery_app.celery_config import celery_app
from app.celery_app.tasks.base import BaseTask, get_connection_store, get_job_queue_service
from app.core.constants.sync import JOB_TYPE_FULL_SYNC
from app.core.exceptions import CatalogSyncException
from app.utils.dispatch_lock import acquire_schedule_lock, release_schedule_lock

logger = logging.getLogger(__name__)


def enqueue_full_syncs(connection_store, queue_service) -> Dict[str, Any]:
    """Enqueue one full_sync job per active connection."""
    connections = connection_store.list_active()
    job_ids: List[str] = []
    failed: List[str] = []
    for connection in connections:
        try:
            job_ids.append(queue_service.enqueue_job(connection.id, JOB_TYPE_FULL_SYNC))
        except CatalogSyncException as exc:
            logger.error(f"Could not enqueue full sync for connection {connection.id}: {exc}")
            failed.append(connection.id)

    logger.info(f"Scheduled sync: enqueued {len(job_ids)} jobs for {len(connections)} active connections")
    return {"status": "enqueued", "jobs": job_ids, "failed_connections": failed}


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.scheduled_sync.enqueue_scheduled_syncs",
)
def enqueue_scheduled_syncs(self):
    """
    Enqueue full syncs for every active connection.

    A Redis lock per UTC hour keeps a doubled beat tick from enqueueing
    the same hour twice.
    """
    hour = datetime.now(timezone.utc).hour
    if not acquire_schedule_lock(hour, self.request.id or "unknown"):
        return {"status": "skipped", "reason": "already_enqueued", "hour": hour}

    try:
        return enqueue_full_syncs(get_connection_store(), get_job_queue_service())
    except Exception:
        release_schedule_lock(hour)
        raise


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.scheduled_sync.enqueue_connection_sync",
)
def enqueue_connection_sync(self, connection_id: str, job_type: str = JOB_TYPE_FULL_SYNC,
                            skus: Optional[List[str]] = None):
    """Enqueue one job for a connection (manual full sync or webhook delta)."""
    job_id = get_job_queue_service().enqueue_job(connection_id, job_type, skus)
    return {"status": "enqueued", "job_id": job_id}
