"""
Celery tasks package.

Exports all tasks for convenient imports.
Version: 1.0.0
"""
from app.celery_app.tasks.scheduled_sync import enqueue_scheduled_syncs, enqueue_connection_sync

__all__ = [
    "enqueue_scheduled_syncs",
    "enqueue_connection_sync",
]
