"""
Celery configuration — broker, task routes, beat schedule.

Celery only carries triggers here: the beat schedule and on-demand enqueue
tasks. Jobs themselves are executed by the sync worker loop (app.worker).

=============================================================================
RUNNING
=============================================================================
    Trigger worker:
        celery -A app.celery_app worker -Q triggers -l info -n triggers@%h

    Celery Beat (scheduler):
        celery -A app.celery_app beat -l info

    Sync worker loop:
        python -m app.worker

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    SYNC_HOURS: Comma-separated UTC hours for scheduled full syncs (default: 1,9,17)
    REDIS_URL / CELERY_BROKER_URL / CELERY_RESULT_BACKEND
Version: 1.0.0
"""
import logging

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from app.core.config import settings

logger = logging.getLogger(__name__)

SYNC_HOURS = settings.sync_hours_list


def _build_beat_schedule() -> dict:
    """Full sync of every active connection at each configured UTC hour."""
    if not SYNC_HOURS:
        logger.warning("SYNC_HOURS is empty, no scheduled syncs")
        return {}

    return {
        "scheduled-full-sync": {
            "task": "tasks.scheduled_sync.enqueue_scheduled_syncs",
            "schedule": crontab(minute=0, hour=",".join(str(h) for h in SYNC_HOURS)),
            "options": {"queue": "triggers"},
        },
    }


celery_app = Celery(
    "catalog_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.celery_app.tasks.scheduled_sync",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_queues=(
        Queue("triggers"),
    ),
    task_routes={
        "tasks.scheduled_sync.*": {"queue": "triggers"},
    },

    beat_schedule=_build_beat_schedule(),

    # Result expiration
    result_expires=3600,
)

logger.info(f"Scheduled full syncs at UTC hours: {SYNC_HOURS}")
