"""
Shared pieces of the destination reconcilers: per-run report, audit helper,
source-item eligibility and politeness pauses.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from app.core.config import Settings, get_settings
from app.schemas.catalog import CatalogItem
from app.schemas.connections import Connection

logger = logging.getLogger("reconciler")


class AuditWriter(Protocol):
    def log(
        self,
        level: str,
        message: str,
        connection_id: Optional[str] = None,
        job_id: Optional[str] = None,
        sku: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation run, by SKU."""
    created: List[str] = field(default_factory=list)
    variants_added: List[str] = field(default_factory=list)
    price_updated: List[str] = field(default_factory=list)
    stock_updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    out_of_stock: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    products_created: int = 0

    def record_error(self, sku: str, error: str) -> None:
        self.errors.setdefault(sku, error)

    @property
    def failed_skus(self) -> List[str]:
        return list(self.errors)

    def summary(self) -> Dict[str, int]:
        return {
            "products_created": self.products_created,
            "created": len(self.created),
            "variants_added": len(self.variants_added),
            "price_updated": len(self.price_updated),
            "stock_updated": len(self.stock_updated),
            "unchanged": len(self.unchanged),
            "skipped": len(self.skipped),
            "out_of_stock": len(self.out_of_stock),
            "errors": len(self.errors),
        }


class BaseReconciler:
    def __init__(
        self,
        connection: Connection,
        audit: AuditWriter,
        job_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._connection = connection
        self._audit_writer = audit
        self._job_id = job_id
        self._settings = settings or get_settings()
        self._sleep = sleep

    def _audit(self, level: str, message: str, sku: Optional[str] = None, **meta: Any) -> None:
        self._audit_writer.log(
            level,
            message,
            connection_id=self._connection.id,
            job_id=self._job_id,
            sku=sku,
            meta=meta or None,
        )

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    def _eligible(self, items: List[CatalogItem], report: ReconcileReport) -> List[CatalogItem]:
        """Drop SKU-less items and, unless configured otherwise, items not in stock."""
        with_sku = [item for item in items if item.has_sku]
        if not self._settings.skip_out_of_stock:
            return with_sku
        eligible = []
        for item in with_sku:
            if item.stock > 0:
                eligible.append(item)
            else:
                report.out_of_stock.append(item.sku)
        if report.out_of_stock:
            logger.info(f"[RECONCILER] {len(report.out_of_stock)} items not in stock, not synced")
        return eligible
