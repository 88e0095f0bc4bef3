"""
Base task class — logging hooks and lazy DI for trigger tasks.

Version: 1.0.0
"""
import logging
from celery import Task

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task with common functionality for all trigger tasks."""

    abstract = True

    # Triggers only write a few rows; a failed enqueue is retried by the
    # next schedule rather than by Celery.
    max_retries = 0

    track_started = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails."""
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task succeeds."""
        logger.info(f"Task {self.name}[{task_id}] succeeded")


# ============================================
# Dependency helpers (lazy loading, worker-local)
# ============================================
def get_connection_store():
    """Get the connection store from the DI container."""
    from app.container import get_connection_store as _get
    return _get()


def get_job_queue_service():
    """Get the job queue service from the DI container."""
    from app.container import get_job_queue_service as _get
    return _get()
