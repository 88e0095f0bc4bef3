"""
Sync Preview — what a full sync of a connection would do, without doing it.

Per source item:
    no SKU                         -> skip "Missing SKU"
    rejected by mapping rules      -> skip with the rule's reason
    not in stock (when configured) -> skip "Out of stock"
    found on the destination       -> update
    missing, creation enabled      -> create
    missing, creation disabled     -> skip "Product not found and creation disabled"

Destination lookups go through the same dispatcher and retry policy as a
real sync. Nothing is written to the destination or to the job tables.
Version: 1.0.0
"""
import logging
from collections import Counter
from typing import Callable, Optional

from app.clients.destination_base import DestinationClient
from app.core.config import Settings, get_settings
from app.core.constants.sync import PLATFORM_SHOPIFY
from app.core.exceptions import ConnectionNotFoundError, ValidationError
from app.db.connection_store import ConnectionStore
from app.schemas.catalog import CatalogItem
from app.schemas.connections import Connection
from app.schemas.preview import PreviewItem, SyncPreview
from app.services.mapping_rules import evaluate, skip_reason
from app.services.source_catalog import SourceCatalog

logger = logging.getLogger("sync_preview")

DEFAULT_PREVIEW_LIMIT = 50
MAX_PREVIEW_LIMIT = 500

SKIP_MISSING_SKU = "Missing SKU"
SKIP_OUT_OF_STOCK = "Out of stock"
SKIP_CREATION_DISABLED = "Product not found and creation disabled"


class SyncPreviewService:
    def __init__(
        self,
        connection_store: ConnectionStore,
        source: SourceCatalog,
        client_factory: Callable[[Connection], DestinationClient],
        settings: Settings | None = None,
    ) -> None:
        self._connections = connection_store
        self._source = source
        self._client_factory = client_factory
        self._settings = settings or get_settings()

    async def generate_preview(self, connection_id: str, limit: int = DEFAULT_PREVIEW_LIMIT) -> SyncPreview:
        """
        Classify every source item for a connection.

        Args:
            connection_id: Connection to preview
            limit: Maximum number of entries in `preview_items` (1..500)

        Raises:
            ConnectionNotFoundError: unknown connection
            ValidationError: limit out of range
        """
        if not 1 <= limit <= MAX_PREVIEW_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PREVIEW_LIMIT}")

        connection = self._connections.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)

        items = await self._source.fetch_catalog()
        logger.info(f"[PREVIEW] Connection {connection_id}: {len(items)} source items")

        client: Optional[DestinationClient] = None
        preview = SyncPreview(connection_id=connection_id, total_items=len(items))
        actions: Counter = Counter()
        reasons: Counter = Counter()

        for item in items:
            entry = self._check_local(item, connection)
            if entry is None:
                if client is None:
                    client = self._client_factory(connection)
                entry = await self._check_destination(client, item, connection)

            actions[entry.action] += 1
            if entry.reason:
                reasons[entry.reason] += 1
            if len(preview.preview_items) < limit:
                preview.preview_items.append(entry)

        preview.items_to_create = actions["create"]
        preview.items_to_update = actions["update"]
        preview.items_to_skip = actions["skip"]
        preview.items_to_sync = preview.items_to_create + preview.items_to_update
        preview.by_action = dict(actions)
        preview.by_reason = dict(reasons)

        logger.info(
            f"[PREVIEW] Connection {connection_id}: create={preview.items_to_create}, "
            f"update={preview.items_to_update}, skip={preview.items_to_skip}"
        )
        return preview

    def _check_local(self, item: CatalogItem, connection: Connection) -> Optional[PreviewItem]:
        """Skip decisions that need no destination call; None means look it up."""
        if not item.has_sku:
            return PreviewItem(sku=item.sku or "", title=item.title, action="skip", reason=SKIP_MISSING_SKU)

        reason = skip_reason(item, connection.rules)
        if reason is not None:
            return PreviewItem(sku=item.sku, title=item.title, action="skip", reason=reason)

        if self._settings.skip_out_of_stock and item.stock <= 0:
            return PreviewItem(sku=item.sku, title=item.title, action="skip", reason=SKIP_OUT_OF_STOCK)
        return None

    async def _check_destination(
        self, client: DestinationClient, item: CatalogItem, connection: Connection
    ) -> PreviewItem:
        transformed, _ = evaluate(item, connection.rules)

        if connection.platform == PLATFORM_SHOPIFY:
            existing = await client.find_variant_by_sku(item.sku)
        else:
            existing = await client.find_product_by_sku(item.sku)

        if existing:
            action, reason = "update", None
        elif connection.create_products:
            action, reason = "create", None
        else:
            return PreviewItem(sku=item.sku, title=item.title, action="skip", reason=SKIP_CREATION_DISABLED)

        return PreviewItem(
            sku=item.sku,
            title=transformed.title,
            action=action,
            reason=reason,
            price=transformed.price,
            stock=transformed.stock,
        )
