"""
Collection Service — find-or-create destination collections.

Smart collections keep their rule conditions and disjunctive flag and pick up
members on the destination side. Custom collections need an explicit
product association. Lookups are cached by (destination domain, title) in an
injected CollectionCache, so repeated product groups in one process do not
repeat the search calls.
Version: 1.0.0
"""
import logging
from typing import Dict, Optional, Tuple

from app.clients.shopify_client import ShopifyDestinationClient
from app.core.constants.dispatch import COLLECTION_CUSTOM, COLLECTION_SMART
from app.core.exceptions import ExternalAPIError
from app.schemas.catalog import CollectionInfo

logger = logging.getLogger("collection_service")


class CollectionCache:
    """Destination collection lookups keyed by (domain, lower-cased title)."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], dict] = {}

    @staticmethod
    def _key(domain: str, title: str) -> Tuple[str, str]:
        return domain.lower(), title.strip().casefold()

    def get(self, domain: str, title: str) -> Optional[dict]:
        return self._entries.get(self._key(domain, title))

    def put(self, domain: str, title: str, collection: dict) -> None:
        self._entries[self._key(domain, title)] = collection

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CollectionSyncService:
    def __init__(self, client: ShopifyDestinationClient, cache: CollectionCache) -> None:
        self._client = client
        self._cache = cache

    async def find_or_create(self, collection: CollectionInfo) -> Optional[dict]:
        """
        Resolve a source collection to a destination collection.

        Returns:
            dict with id, title and collection_type ("smart"/"custom"), or None
            when the collection could not be resolved.
        """
        cached = self._cache.get(self._client.domain, collection.title)
        if cached is not None:
            return cached

        resolved: Optional[dict] = None
        if collection.collection_type == COLLECTION_SMART and collection.rules:
            resolved = await self._resolve_smart(collection)
        if resolved is None:
            resolved = await self._resolve_custom(collection)

        if resolved is not None:
            self._cache.put(self._client.domain, collection.title, resolved)
        return resolved

    async def _resolve_smart(self, collection: CollectionInfo) -> Optional[dict]:
        existing = await self._client.find_smart_collection(collection.title)
        if existing:
            return self._entry(existing, COLLECTION_SMART)
        try:
            created = await self._client.create_smart_collection(collection)
        except ExternalAPIError as exc:
            # Rule columns the destination rejects: fall back to a custom collection
            logger.warning(f"[COLLECTIONS] Smart collection '{collection.title}' rejected, using custom: {exc}")
            return None
        logger.info(f"[COLLECTIONS] Created smart collection '{collection.title}' id={created.get('id')}")
        return self._entry(created, COLLECTION_SMART)

    async def _resolve_custom(self, collection: CollectionInfo) -> Optional[dict]:
        existing = await self._client.find_custom_collection(collection.title)
        if existing:
            return self._entry(existing, COLLECTION_CUSTOM)
        created = await self._client.create_custom_collection(collection)
        if not created.get("id"):
            return None
        logger.info(f"[COLLECTIONS] Created custom collection '{collection.title}' id={created.get('id')}")
        return self._entry(created, COLLECTION_CUSTOM)

    @staticmethod
    def _entry(collection: dict, collection_type: str) -> dict:
        return {
            "id": collection.get("id"),
            "title": collection.get("title"),
            "handle": collection.get("handle"),
            "collection_type": collection_type,
        }

    async def attach(self, product_id: str | int, collection: CollectionInfo) -> Optional[dict]:
        """Find-or-create `collection` and, for custom collections, add the product."""
        resolved = await self.find_or_create(collection)
        if resolved is None:
            return None
        if resolved["collection_type"] == COLLECTION_CUSTOM and resolved.get("id"):
            await self._client.add_product_to_collection(product_id, resolved["id"])
        return resolved
