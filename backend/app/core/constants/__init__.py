"""
Constants package — re-exports from domain-specific modules.

Usage:
    from app.core.constants.sync import JOB_QUEUED
    from app.core.constants.dispatch import TIER_INVENTORY
    # or import everything:
    from app.core.constants import sync, dispatch
Version: 1.0.0
"""

from app.core.constants import sync, dispatch
from app.core.constants.sync import (
    JOB_QUEUED,
    JOB_RUNNING,
    JOB_SUCCEEDED,
    JOB_DEAD,
    JOB_TYPE_FULL_SYNC,
    JOB_TYPE_DELTA,
    LEVEL_INFO,
    LEVEL_WARN,
    LEVEL_ERROR,
    CONNECTION_ACTIVE,
    CONNECTION_PAUSED,
    CONNECTION_DISABLED,
    DEFAULT_CURRENCY,
)
from app.core.constants.dispatch import (
    TIER_GENERAL,
    TIER_INVENTORY,
    COLLECTION_SMART,
    COLLECTION_CUSTOM,
)

__all__ = [
    "sync",
    "dispatch",
    "JOB_QUEUED",
    "JOB_RUNNING",
    "JOB_SUCCEEDED",
    "JOB_DEAD",
    "JOB_TYPE_FULL_SYNC",
    "JOB_TYPE_DELTA",
    "LEVEL_INFO",
    "LEVEL_WARN",
    "LEVEL_ERROR",
    "CONNECTION_ACTIVE",
    "CONNECTION_PAUSED",
    "CONNECTION_DISABLED",
    "DEFAULT_CURRENCY",
    "TIER_GENERAL",
    "TIER_INVENTORY",
    "COLLECTION_SMART",
    "COLLECTION_CUSTOM",
]
