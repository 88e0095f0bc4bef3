"""
Celery application package.

Exports the Celery app that carries sync triggers.
Version: 1.0.0
"""
from app.celery_app.celery_config import celery_app

__all__ = ["celery_app"]
