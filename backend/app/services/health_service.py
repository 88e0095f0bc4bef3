"""
Health service — database reachability, queue state and dispatcher pressure.

Status:
- unhealthy: database unreachable
- degraded:  a dispatcher queue deeper than the configured threshold
- healthy:   otherwise
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from app.core.config import Settings, get_settings
from app.db.audit_store import AuditStore, error_rate
from app.db.connection_store import ConnectionStore
from app.db.job_store import JobStore
from app.utils.rate_limiter import RateLimiterRegistry

logger = logging.getLogger(__name__)


class HealthService:
    def __init__(
        self,
        connection_store: ConnectionStore,
        job_store: JobStore,
        audit_store: AuditStore,
        dispatcher: RateLimiterRegistry,
        settings: Settings | None = None,
    ) -> None:
        self._connections = connection_store
        self._jobs = job_store
        self._audit = audit_store
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()

    def get_health(self) -> Dict[str, Any]:
        status = "healthy"
        result: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}

        try:
            result["connections"] = self._connections.count_by_status()
            result["jobs"] = self._jobs.count_by_state()
            result["database"] = {"status": "ok"}
        except Exception as exc:
            logger.error(f"Health check database error: {exc}")
            result["database"] = {"status": "error", "error": str(exc)}
            status = "unhealthy"

        result["rate_limiters"] = self._dispatcher.get_status()
        deepest = self._dispatcher.max_queue_size()
        if status == "healthy" and deepest > self._settings.health_queue_degraded_threshold:
            status = "degraded"

        result["status"] = status
        return result

    def connection_error_rate(self, connection_id: str, hours: int = 24) -> Dict[str, Any]:
        """Share of error-level audit entries for a connection in the last `hours`."""
        counts = self._audit.count_levels(connection_id, hours)
        return {
            "connection_id": connection_id,
            "window_hours": hours,
            "counts": counts,
            "error_rate": error_rate(counts),
        }
