"""
Catalog Reconciler — synchronizes source variants to a Shopify destination.

Per product group (source product id, or SKU when absent):
1. Exact SKU lookup for every variant
2. Missing variants, when creation is enabled:
   a. group already has a destination product -> add variants to it
   b. a destination product with the same normalized title exists -> add
      only the variants it lacks
   c. otherwise create one product carrying all missing variants
   When creation is disabled each missing SKU gets a warn audit entry.
3. Price (when enabled and different) and stock (when a location is set)
   for every variant now on the destination
4. Collections of the group's first item, when collection sync is enabled

A failing group is audited as an error and the run continues with the next.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from app.clients.shopify_client import ShopifyDestinationClient, to_shopify_product_body, to_shopify_variant
from app.core.config import Settings
from app.core.constants.sync import LEVEL_ERROR, LEVEL_INFO, LEVEL_WARN
from app.core.exceptions import ExternalAPIError
from app.schemas.catalog import CatalogItem
from app.schemas.connections import Connection
from app.services.collection_service import CollectionSyncService
from app.services.reconciler_base import AuditWriter, BaseReconciler, ReconcileReport
from app.utils.catalog_helpers import format_money, group_by_product, normalize_title, prices_differ

logger = logging.getLogger("catalog_reconciler")

# (source item, destination variant)
Match = Tuple[CatalogItem, Dict[str, Any]]


class CatalogReconciler(BaseReconciler):
    def __init__(
        self,
        client: ShopifyDestinationClient,
        connection: Connection,
        audit: AuditWriter,
        collections: CollectionSyncService,
        job_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(connection, audit, job_id, settings, sleep)
        self._client = client
        self._collections = collections

    async def reconcile(self, items: List[CatalogItem]) -> ReconcileReport:
        report = ReconcileReport()
        groups = group_by_product(self._eligible(items, report))
        logger.info(
            f"[RECONCILER] Connection {self._connection.id}: {len(groups)} product groups to sync"
        )

        for key, group in groups.items():
            try:
                await self._sync_group(group, report)
            except Exception as exc:
                logger.error(f"[RECONCILER] Product group {key} failed: {exc}")
                self._audit(LEVEL_ERROR, f"Error processing product group: {exc}", sku=key)
                for item in group:
                    report.record_error(item.sku, str(exc))

        logger.info(f"[RECONCILER] Connection {self._connection.id} done: {report.summary()}")
        return report

    async def _sync_group(self, group: List[CatalogItem], report: ReconcileReport) -> None:
        existing: List[Match] = []
        missing: List[CatalogItem] = []
        for item in group:
            variant = await self._client.find_variant_by_sku(item.sku)
            await self._pause(self._settings.lookup_delay)
            if variant:
                existing.append((item, variant))
            else:
                missing.append(item)

        product_id = existing[0][1].get("product_id") if existing else None

        if missing:
            if self._connection.create_products:
                product_id, added = await self._place_missing(group, missing, product_id, report)
                existing.extend(added)
            else:
                for item in missing:
                    self._audit(LEVEL_WARN, "Product not found and creation disabled", sku=item.sku)
                    report.skipped.append(item.sku)

        for item, variant in existing:
            await self._update_variant(item, variant, report)

        if self._connection.syncs_collections and product_id is not None:
            await self._sync_collections(product_id, group[0])

    async def _place_missing(
        self,
        group: List[CatalogItem],
        missing: List[CatalogItem],
        product_id: Optional[Any],
        report: ReconcileReport,
    ) -> Tuple[Optional[Any], List[Match]]:
        """Add missing variants to a known product, a same-titled product, or a new one."""
        if product_id is not None:
            added = await self._add_variants(product_id, str(product_id), missing, report)
            return product_id, added

        title = normalize_title(group[0]) or group[0].sku
        match = await self._client.find_product_by_title(title)
        await self._pause(self._settings.lookup_delay)
        if match:
            logger.info(f"[RECONCILER] Found existing product '{match.get('title')}' id={match.get('id')} by title")
            present = {v.get("sku"): v for v in match.get("variants") or [] if v.get("sku")}
            matched: List[Match] = []
            to_add: List[CatalogItem] = []
            for item in missing:
                if item.sku in present:
                    matched.append((item, present[item.sku]))
                else:
                    to_add.append(item)
            matched.extend(await self._add_variants(match["id"], match.get("title") or title, to_add, report))
            return match["id"], matched

        product = await self._client.create_product(to_shopify_product_body(missing, title, self._connection))
        report.products_created += 1
        created = {v.get("sku"): v for v in product.get("variants") or []}
        placed: List[Match] = []
        for item in missing:
            self._audit(LEVEL_INFO, f"Created as variant of: {title}", sku=item.sku, product_id=product.get("id"))
            report.created.append(item.sku)
            if item.sku in created:
                placed.append((item, created[item.sku]))
        await self._pause(self._settings.product_create_delay)
        return product.get("id"), placed

    async def _add_variants(
        self,
        product_id: Any,
        product_title: str,
        items: List[CatalogItem],
        report: ReconcileReport,
    ) -> List[Match]:
        added: List[Match] = []
        for item in items:
            variant = await self._client.add_variant(product_id, to_shopify_variant(item))
            self._audit(
                LEVEL_INFO,
                f"Added as variant of existing product: {product_title}",
                sku=item.sku,
                product_id=product_id,
            )
            report.variants_added.append(item.sku)
            added.append((item, variant))
            await self._pause(self._settings.variant_add_delay)
        return added

    async def _update_variant(self, item: CatalogItem, variant: Dict[str, Any], report: ReconcileReport) -> None:
        changed = False
        try:
            current_price = variant.get("price")
            if self._connection.sync_price and variant.get("id") and prices_differ(item.price, current_price):
                new_price = format_money(item.price)
                await self._client.update_variant_price(variant["id"], new_price)
                self._audit(LEVEL_INFO, f"Price updated {current_price} -> {new_price}", sku=item.sku)
                report.price_updated.append(item.sku)
                changed = True
                await self._pause(self._settings.update_delay)

            inventory_item_id = variant.get("inventory_item_id")
            if self._connection.location_id and inventory_item_id:
                await self._client.set_inventory_level(self._connection.location_id, inventory_item_id, item.stock)
                self._audit(LEVEL_INFO, f"Stock set -> {item.stock}", sku=item.sku)
                report.stock_updated.append(item.sku)
                changed = True
                await self._pause(self._settings.update_delay)
        except Exception as exc:
            logger.error(f"[RECONCILER] Variant {item.sku} update failed: {exc}")
            self._audit(LEVEL_ERROR, f"Error updating variant: {exc}", sku=item.sku)
            report.record_error(item.sku, str(exc))
            return

        if not changed:
            report.unchanged.append(item.sku)

    async def _sync_collections(self, product_id: Any, first: CatalogItem) -> None:
        for collection in first.collections:
            try:
                await self._collections.attach(product_id, collection)
            except ExternalAPIError as exc:
                logger.warning(f"[RECONCILER] Collection '{collection.title}' failed for {product_id}: {exc}")
                self._audit(LEVEL_WARN, f"Collection sync failed: {collection.title}: {exc}", sku=first.sku)
