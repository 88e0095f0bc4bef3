"""
WooCommerce Reconciler — per-item sync to a WooCommerce destination.

WooCommerce products are synced one SKU at a time as simple products:
exact SKU lookup, create when missing (if enabled), otherwise update stock
and, when price sync is on and the price differs, the regular price.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.clients.woocommerce_client import WooCommerceDestinationClient, stock_status, to_woocommerce_product_body
from app.core.config import Settings
from app.core.constants.sync import LEVEL_ERROR, LEVEL_INFO, LEVEL_WARN
from app.schemas.catalog import CatalogItem
from app.schemas.connections import Connection
from app.services.reconciler_base import AuditWriter, BaseReconciler, ReconcileReport
from app.utils.catalog_helpers import format_money, prices_differ

logger = logging.getLogger("woocommerce_reconciler")


class WooCommerceReconciler(BaseReconciler):
    def __init__(
        self,
        client: WooCommerceDestinationClient,
        connection: Connection,
        audit: AuditWriter,
        job_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(connection, audit, job_id, settings, sleep)
        self._client = client

    async def reconcile(self, items: List[CatalogItem]) -> ReconcileReport:
        report = ReconcileReport()
        eligible = self._eligible(items, report)
        logger.info(f"[WOO] Connection {self._connection.id}: {len(eligible)} items to sync")

        for item in eligible:
            try:
                await self._sync_item(item, report)
            except Exception as exc:
                logger.error(f"[WOO] Item {item.sku} failed: {exc}")
                self._audit(LEVEL_ERROR, f"Error syncing item: {exc}", sku=item.sku)
                report.record_error(item.sku, str(exc))

        logger.info(f"[WOO] Connection {self._connection.id} done: {report.summary()}")
        return report

    async def _sync_item(self, item: CatalogItem, report: ReconcileReport) -> None:
        product = await self._client.find_product_by_sku(item.sku)
        await self._pause(self._settings.lookup_delay)

        if product is None:
            if not self._connection.create_products:
                self._audit(LEVEL_WARN, "Product not found and creation disabled", sku=item.sku)
                report.skipped.append(item.sku)
                return
            category_ids = []
            if self._connection.sync_categories and item.category:
                category_id = await self._client.find_or_create_category(item.category)
                if category_id is not None:
                    category_ids.append(category_id)
            created = await self._client.create_product(
                to_woocommerce_product_body(item, self._connection, category_ids)
            )
            self._audit(LEVEL_INFO, f"Created product: {item.title}", sku=item.sku, product_id=created.get("id"))
            report.created.append(item.sku)
            report.products_created += 1
            await self._pause(self._settings.product_create_delay)
            return

        body: Dict[str, Any] = {
            "manage_stock": True,
            "stock_quantity": item.stock,
            "stock_status": stock_status(item.stock),
        }
        current_price = product.get("regular_price")
        price_changed = self._connection.sync_price and prices_differ(item.price, current_price)
        if price_changed:
            body["regular_price"] = format_money(item.price)

        await self._client.update_product(product["id"], body)
        if price_changed:
            self._audit(
                LEVEL_INFO,
                f"Price updated {current_price} -> {body['regular_price']}, stock set -> {item.stock}",
                sku=item.sku,
            )
            report.price_updated.append(item.sku)
        else:
            self._audit(LEVEL_INFO, f"Stock set -> {item.stock}", sku=item.sku)
        report.stock_updated.append(item.sku)
        await self._pause(self._settings.update_delay)
