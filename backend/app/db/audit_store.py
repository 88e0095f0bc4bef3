"""
Audit store — append-only per-SKU sync outcomes.

Entries are never updated; they are removed only together with their
connection.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from app.core.constants.sync import LEVEL_ERROR
from app.db.base_store import BaseStore, utc_now_iso
from app.schemas.jobs import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditStore(BaseStore):
    table = "audit_logs"

    def write(self, entry: AuditLogEntry) -> None:
        row = entry.model_dump(mode="json")
        row["id"] = row.get("id") or str(uuid.uuid4())
        row["ts"] = row.get("ts") or utc_now_iso()
        self._table().insert(row).execute()

    def log(
        self,
        level: str,
        message: str,
        connection_id: Optional[str] = None,
        job_id: Optional[str] = None,
        sku: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.write(AuditLogEntry(
            level=level,
            message=message,
            connection_id=connection_id,
            job_id=job_id,
            sku=sku,
            meta=meta or {},
        ))

    def query(
        self,
        connection_id: Optional[str] = None,
        job_id: Optional[str] = None,
        level: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditLogEntry]:
        """Newest-first audit entries matching the given filters."""
        query = self._table().select("*")
        if connection_id:
            query = query.eq("connection_id", connection_id)
        if job_id:
            query = query.eq("job_id", job_id)
        if level:
            query = query.eq("level", level)
        if since:
            query = query.gte("ts", since.isoformat())
        result = query.order("ts", desc=True).limit(limit).execute()
        return [AuditLogEntry(**row) for row in self._rows(result)]

    def count_levels(self, connection_id: str, hours: int = 24) -> Dict[str, int]:
        """Count entries per level for a connection within the last `hours`."""
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        result = self._table()\
            .select("level")\
            .eq("connection_id", connection_id)\
            .gte("ts", since.isoformat())\
            .execute()
        counts: Dict[str, int] = {}
        for row in self._rows(result):
            counts[row["level"]] = counts.get(row["level"], 0) + 1
        return counts

    def delete_for_connection(self, connection_id: str) -> None:
        self._table().delete().eq("connection_id", connection_id).execute()
        logger.info(f"Deleted audit log for connection {connection_id}")


def error_rate(counts: Dict[str, int]) -> float:
    total = sum(counts.values())
    if total == 0:
        return 0.0
    return round(counts.get(LEVEL_ERROR, 0) / total, 4)
