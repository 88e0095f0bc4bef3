"""
Job queue service — enqueue, inspect and manage sync jobs.

Exposed to triggers (API, webhooks, scheduler) and operators. The worker
loop is the only component that claims or completes jobs.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from app.core.constants.sync import JOB_TYPE_DELTA, JOB_TYPES
from app.core.exceptions import ConnectionNotFoundError, JobNotFoundError, ValidationError
from app.db.connection_store import ConnectionStore
from app.db.job_item_store import JobItemStore
from app.db.job_store import JobStore
from app.schemas.jobs import Job, JobProgress

logger = logging.getLogger(__name__)


class JobQueueService:
    def __init__(
        self,
        job_store: JobStore,
        job_item_store: JobItemStore,
        connection_store: ConnectionStore,
    ) -> None:
        self._jobs = job_store
        self._items = job_item_store
        self._connections = connection_store

    # ------------------------------------------------------------------
    # Enqueue / inspect
    # ------------------------------------------------------------------

    def enqueue_job(self, connection_id: str, job_type: str, skus: Optional[Sequence[str]] = None) -> str:
        """
        Queue a sync job.

        Args:
            connection_id: Target connection
            job_type: "full_sync" or "delta"
            skus: SKUs to scope a delta job to (ignored for full_sync)

        Returns:
            str: New job id
        """
        if job_type not in JOB_TYPES:
            raise ValidationError(f"Invalid job type: {job_type}")
        if job_type == JOB_TYPE_DELTA and not [s for s in (skus or []) if s and s.strip()]:
            raise ValidationError("Delta jobs need at least one SKU")
        if self._connections.get(connection_id) is None:
            raise ConnectionNotFoundError(connection_id)

        job = self._jobs.enqueue(connection_id, job_type)
        if job_type == JOB_TYPE_DELTA:
            self._items.add_skus(job.id, skus or [])
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def list_jobs_by_connection(self, connection_id: str, limit: int = 50) -> List[Job]:
        return self._jobs.list_by_connection(connection_id, limit)

    def cancel_queued_jobs(self, connection_id: str) -> int:
        return self._jobs.cancel_queued(connection_id)

    def get_progress(self, job_id: str) -> Dict[str, Any]:
        """Progress of a job's items: total, completed, failed, remaining, percentage."""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        progress: JobProgress = self._items.get_progress(job_id)
        return {
            "job_id": job_id,
            "state": job.state,
            "total": progress.total,
            "completed": progress.completed,
            "failed": progress.failed,
            "remaining": progress.remaining,
            "percentage": progress.percentage,
        }

    # ------------------------------------------------------------------
    # Dead-letter queue
    # ------------------------------------------------------------------

    def list_dead(self, limit: int = 50, connection_id: Optional[str] = None) -> List[Job]:
        return self._jobs.list_dead(limit, connection_id)

    def retry_dead(self, job_id: str) -> bool:
        retried = self._jobs.retry_dead(job_id)
        if not retried:
            logger.warning(f"retry_dead: job {job_id} is not dead")
        return retried

    def delete_dead(self, job_id: str) -> bool:
        deleted = self._jobs.delete_dead(job_id)
        if not deleted:
            logger.warning(f"delete_dead: job {job_id} is not dead")
        return deleted

    def count_dead(self) -> int:
        return self._jobs.count_dead()
