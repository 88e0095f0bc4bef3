"""
Job schemas — queued sync executions, per-SKU items, progress, audit entries.

Version: 1.0.0
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.core.constants.sync import JOB_QUEUED, JOB_TYPE_DELTA


class Job(BaseModel):
    id: str
    connection_id: str
    job_type: str
    state: str = JOB_QUEUED
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_delta(self) -> bool:
        return self.job_type == JOB_TYPE_DELTA


class JobItem(BaseModel):
    id: Optional[str] = None
    job_id: str
    sku: str
    state: str = JOB_QUEUED
    error: Optional[str] = None


class JobProgress(BaseModel):
    """Delta-job progress derived from job items."""
    job_id: str
    total: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def remaining(self) -> int:
        return max(self.total - self.completed - self.failed, 0)

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round((self.completed + self.failed) / self.total * 100, 1)


class AuditLogEntry(BaseModel):
    """Append-only record of one sync action outcome."""
    id: Optional[str] = None
    ts: Optional[datetime] = None
    level: str
    connection_id: Optional[str] = None
    job_id: Optional[str] = None
    sku: Optional[str] = None
    message: str
    meta: Dict[str, Any] = Field(default_factory=dict)
