"""
Job store — persisted sync job queue.

State machine:
    queued -> running -> succeeded
                      -> queued   (failure, attempts < max)
                      -> dead     (failure, attempts >= max)
    queued -> dead                (connection paused: "cancelled")
    running -> queued | dead      (orphaned by a stopped worker, counted as a failure)
    dead   -> queued              (manual retry_dead)

Claiming is an optimistic compare-and-set: the UPDATE is filtered on
`state = queued`, so when two workers race for one row only one gets it back.
All methods are synchronous.
"""
import logging
import uuid
from typing import Dict, List, Optional

from app.core.constants.sync import (
    CANCELLED_ERROR,
    CLAIM_CANDIDATES,
    JOB_DEAD,
    JOB_QUEUED,
    JOB_RUNNING,
    JOB_STATES,
    JOB_SUCCEEDED,
)
from app.db.base_store import BaseStore, utc_now_iso
from app.schemas.jobs import Job

logger = logging.getLogger(__name__)


class JobStore(BaseStore):
    """
    Store for the `jobs` table.

    Provides methods for:
    - Enqueueing and claiming jobs
    - Recording success / failure / dead-lettering
    - Dead-letter queue operations
    """

    table = "jobs"

    def enqueue(self, connection_id: str, job_type: str) -> Job:
        """
        Create a job in `queued` with zero attempts.

        Args:
            connection_id: Target connection
            job_type: "full_sync" or "delta"

        Returns:
            Job: Created job
        """
        now = utc_now_iso()
        data = {
            "id": str(uuid.uuid4()),
            "connection_id": connection_id,
            "job_type": job_type,
            "state": JOB_QUEUED,
            "attempts": 0,
            "last_error": None,
            "created_at": now,
            "updated_at": now,
        }
        result = self._table().insert(data).execute()
        logger.info(f"Enqueued job {data['id']} ({job_type}) for connection {connection_id}")
        return Job(**(self._first(result) or data))

    def get(self, job_id: str) -> Optional[Job]:
        result = self._table().select("*").eq("id", job_id).execute()
        row = self._first(result)
        return Job(**row) if row else None

    def list_by_connection(self, connection_id: str, limit: int = 50) -> List[Job]:
        result = self._table()\
            .select("*")\
            .eq("connection_id", connection_id)\
            .order("created_at", desc=True)\
            .limit(limit)\
            .execute()
        return [Job(**row) for row in self._rows(result)]

    def claim_next(self) -> Optional[Job]:
        """
        Claim the oldest queued job by moving it to `running`.

        Returns:
            Job or None: the claimed job, or None when nothing is queued
        """
        result = self._table()\
            .select("*")\
            .eq("state", JOB_QUEUED)\
            .order("created_at")\
            .limit(CLAIM_CANDIDATES)\
            .execute()

        for row in self._rows(result):
            claimed = self._table()\
                .update({"state": JOB_RUNNING, "updated_at": utc_now_iso()})\
                .eq("id", row["id"])\
                .eq("state", JOB_QUEUED)\
                .execute()
            claimed_row = self._first(claimed)
            if claimed_row:
                logger.info(f"Claimed job {row['id']} (attempts so far: {row.get('attempts', 0)})")
                return Job(**claimed_row)
            logger.debug(f"Job {row['id']} was claimed by another worker")
        return None

    def succeed(self, job_id: str) -> None:
        self._table().update({
            "state": JOB_SUCCEEDED,
            "last_error": None,
            "updated_at": utc_now_iso(),
        }).eq("id", job_id).execute()
        logger.info(f"Job {job_id} succeeded")

    def fail(self, job_id: str, error: str, max_attempts: int) -> Optional[Job]:
        """
        Record a failed run.

        Increments attempts; at `max_attempts` the job goes to `dead`,
        otherwise back to `queued` for a later claim.

        Returns:
            Job or None: the updated job
        """
        job = self.get(job_id)
        if job is None:
            logger.warning(f"Cannot fail job {job_id}: not found")
            return None

        attempts = job.attempts + 1
        state = JOB_DEAD if attempts >= max_attempts else JOB_QUEUED
        result = self._table().update({
            "state": state,
            "attempts": attempts,
            "last_error": error,
            "updated_at": utc_now_iso(),
        }).eq("id", job_id).execute()

        if state == JOB_DEAD:
            logger.error(f"Job {job_id} dead after {attempts} attempts: {error}")
        else:
            logger.warning(f"Job {job_id} failed (attempt {attempts}/{max_attempts}), re-queued: {error}")

        row = self._first(result)
        if row:
            return Job(**row)
        return job.model_copy(update={"state": state, "attempts": attempts, "last_error": error})

    def cancel_queued(self, connection_id: str) -> int:
        """
        Move a connection's queued jobs straight to `dead` with "cancelled".

        Running jobs are untouched.

        Returns:
            int: Number of jobs cancelled
        """
        result = self._table().update({
            "state": JOB_DEAD,
            "last_error": CANCELLED_ERROR,
            "updated_at": utc_now_iso(),
        }).eq("connection_id", connection_id).eq("state", JOB_QUEUED).execute()
        count = len(self._rows(result))
        logger.info(f"Cancelled {count} queued jobs for connection {connection_id}")
        return count

    def list_running(self, limit: int = 100) -> List[Job]:
        result = self._table()\
            .select("*")\
            .eq("state", JOB_RUNNING)\
            .order("updated_at")\
            .limit(limit)\
            .execute()
        return [Job(**row) for row in self._rows(result)]

    # ------------------------------------------------------------------
    # Dead-letter queue
    # ------------------------------------------------------------------

    def list_dead(self, limit: int = 50, connection_id: Optional[str] = None) -> List[Job]:
        query = self._table().select("*").eq("state", JOB_DEAD)
        if connection_id:
            query = query.eq("connection_id", connection_id)
        result = query.order("updated_at", desc=True).limit(limit).execute()
        return [Job(**row) for row in self._rows(result)]

    def retry_dead(self, job_id: str) -> bool:
        """Reset a dead job to queued with attempts=0. Returns False if not dead."""
        result = self._table().update({
            "state": JOB_QUEUED,
            "attempts": 0,
            "last_error": None,
            "updated_at": utc_now_iso(),
        }).eq("id", job_id).eq("state", JOB_DEAD).execute()
        retried = bool(self._rows(result))
        if retried:
            logger.info(f"Dead job {job_id} re-queued")
        return retried

    def delete_dead(self, job_id: str) -> bool:
        """Delete a dead job and its items. Returns False if not dead."""
        job = self.get(job_id)
        if job is None or job.state != JOB_DEAD:
            return False
        self._table("job_items").delete().eq("job_id", job_id).execute()
        result = self._table().delete().eq("id", job_id).eq("state", JOB_DEAD).execute()
        deleted = bool(self._rows(result))
        if deleted:
            logger.info(f"Dead job {job_id} deleted")
        return deleted

    def count_dead(self) -> int:
        result = self._table().select("id", count="exact").eq("state", JOB_DEAD).execute()
        if result.count is not None:
            return result.count
        return len(self._rows(result))

    def count_by_state(self) -> Dict[str, int]:
        result = self._table().select("state").execute()
        counts = {state: 0 for state in JOB_STATES}
        for row in self._rows(result):
            counts[row["state"]] = counts.get(row["state"], 0) + 1
        return counts
