"""
Job item store — per-SKU rows of delta jobs.
"""
import logging
import uuid
from typing import Iterable, List, Optional

from app.core.constants.sync import ITEM_FAILED, ITEM_QUEUED, ITEM_SUCCEEDED
from app.db.base_store import BaseStore, utc_now_iso
from app.schemas.jobs import JobItem, JobProgress

logger = logging.getLogger(__name__)

# PostgREST keeps `in` filters in the query string
IN_FILTER_CHUNK = 200


class JobItemStore(BaseStore):
    table = "job_items"

    def add_skus(self, job_id: str, skus: Iterable[str]) -> int:
        """Insert one queued item per distinct non-empty SKU."""
        seen = []
        for sku in skus:
            sku = (sku or "").strip()
            if sku and sku not in seen:
                seen.append(sku)
        if not seen:
            return 0

        now = utc_now_iso()
        rows = [
            {
                "id": str(uuid.uuid4()),
                "job_id": job_id,
                "sku": sku,
                "state": ITEM_QUEUED,
                "error": None,
                "created_at": now,
                "updated_at": now,
            }
            for sku in seen
        ]
        self._table().insert(rows).execute()
        logger.info(f"Added {len(rows)} items to job {job_id}")
        return len(rows)

    def list_items(self, job_id: str) -> List[JobItem]:
        result = self._table().select("*").eq("job_id", job_id).execute()
        return [JobItem(**row) for row in self._rows(result)]

    def list_skus(self, job_id: str) -> List[str]:
        result = self._table().select("sku").eq("job_id", job_id).execute()
        return [row["sku"] for row in self._rows(result) if row.get("sku")]

    def mark_state(self, job_id: str, skus: List[str], state: str, error: Optional[str] = None) -> None:
        if not skus:
            return
        for start in range(0, len(skus), IN_FILTER_CHUNK):
            chunk = skus[start:start + IN_FILTER_CHUNK]
            self._table().update({
                "state": state,
                "error": error,
                "updated_at": utc_now_iso(),
            }).eq("job_id", job_id).in_("sku", chunk).execute()

    def mark_all(self, job_id: str, state: str) -> None:
        self._table().update({"state": state, "updated_at": utc_now_iso()}).eq("job_id", job_id).execute()

    def get_progress(self, job_id: str) -> JobProgress:
        result = self._table().select("state").eq("job_id", job_id).execute()
        rows = self._rows(result)
        return JobProgress(
            job_id=job_id,
            total=len(rows),
            completed=sum(1 for r in rows if r.get("state") == ITEM_SUCCEEDED),
            failed=sum(1 for r in rows if r.get("state") == ITEM_FAILED),
        )
