"""
Connection store — destination targets.

Only explicit update operations mutate a connection; the sync engine itself
touches nothing but `last_synced_at` and pause/resume `status`.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from app.core.constants.sync import CONNECTION_ACTIVE, CONNECTION_STATUSES
from app.core.exceptions import ValidationError
from app.db.base_store import BaseStore, utc_now_iso
from app.schemas.connections import Connection, MappingRules

logger = logging.getLogger(__name__)


class ConnectionStore(BaseStore):
    table = "connections"

    def get(self, connection_id: str) -> Optional[Connection]:
        """Read a connection row as an immutable snapshot."""
        result = self._table().select("*").eq("id", connection_id).execute()
        row = self._first(result)
        return Connection.from_row(row) if row else None

    def list_active(self) -> List[Connection]:
        result = self._table().select("*").eq("status", CONNECTION_ACTIVE).execute()
        return [Connection.from_row(row) for row in self._rows(result)]

    def create(self, data: Dict[str, Any]) -> Connection:
        """
        Insert a connection row.

        Args:
            data: Column values; `rules` must already be a validated MappingRules

        Returns:
            Connection snapshot of the created row
        """
        row = dict(data)
        rules = row.pop("rules", None) or MappingRules()
        row["rules_json"] = json.loads(rules.model_dump_json())
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("status", CONNECTION_ACTIVE)
        row["created_at"] = row["updated_at"] = utc_now_iso()

        result = self._table().insert(row).execute()
        logger.info(f"Created connection {row['id']} ({row.get('platform')})")
        return Connection.from_row(self._first(result) or row)

    def update_rules(self, connection_id: str, rules: MappingRules) -> None:
        self._table().update({
            "rules_json": json.loads(rules.model_dump_json()),
            "updated_at": utc_now_iso(),
        }).eq("id", connection_id).execute()

    def update_fields(self, connection_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        payload = dict(fields)
        payload["updated_at"] = utc_now_iso()
        self._table().update(payload).eq("id", connection_id).execute()

    def set_status(self, connection_id: str, status: str) -> None:
        if status not in CONNECTION_STATUSES:
            raise ValidationError(f"Invalid connection status: {status}")
        self.update_fields(connection_id, {"status": status})
        logger.info(f"Connection {connection_id} status -> {status}")

    def touch_last_synced(self, connection_id: str) -> None:
        now = utc_now_iso()
        self._table().update({"last_synced_at": now, "updated_at": now}).eq("id", connection_id).execute()

    def count_by_status(self) -> Dict[str, int]:
        result = self._table().select("status").execute()
        counts = {status: 0 for status in CONNECTION_STATUSES}
        for row in self._rows(result):
            status = row.get("status")
            counts[status] = counts.get(status, 0) + 1
        return counts
