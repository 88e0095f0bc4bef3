"""
Source catalog — pluggable fetchers and multi-source deduplication.

Fetchers are external collaborators; anything with an async
`fetch_catalog()` returning CatalogItems can be plugged in.
"""
import logging
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from app.schemas.catalog import CatalogItem

logger = logging.getLogger("source_catalog")


class SourceCatalog(Protocol):
    async def fetch_catalog(self) -> List[CatalogItem]:
        ...


def merge_source_catalogs(catalogs: Iterable[List[CatalogItem]], primary_source: str = "shopify") -> List[CatalogItem]:
    """
    Deduplicate items across sources by SKU.

    Items without a SKU are dropped. When two sources report the same SKU the
    record tagged with `primary_source` wins; otherwise the first seen wins.
    Output order follows first appearance of each SKU.
    """
    merged: Dict[str, CatalogItem] = {}
    dropped = 0
    for catalog in catalogs:
        for item in catalog:
            if not item.has_sku:
                dropped += 1
                continue
            current = merged.get(item.sku)
            if current is None:
                merged[item.sku] = item
            elif item.source == primary_source and current.source != primary_source:
                merged[item.sku] = item
    if dropped:
        logger.info(f"[SOURCE] Dropped {dropped} items without SKU")
    return list(merged.values())


def filter_by_skus(items: List[CatalogItem], skus: Optional[Sequence[str]]) -> List[CatalogItem]:
    """Restrict to `skus` (delta jobs); None means no filter."""
    if skus is None:
        return items
    wanted = set(skus)
    return [item for item in items if item.sku in wanted]


class CompositeSourceCatalog:
    """Fetches every configured source and merges the results."""

    def __init__(self, sources: Sequence[SourceCatalog], primary_source: str = "shopify") -> None:
        self._sources = list(sources)
        self._primary_source = primary_source

    async def fetch_catalog(self) -> List[CatalogItem]:
        catalogs = []
        for source in self._sources:
            items = await source.fetch_catalog()
            logger.info(f"[SOURCE] {type(source).__name__} returned {len(items)} items")
            catalogs.append(items)
        return merge_source_catalogs(catalogs, self._primary_source)


class StaticSourceCatalog:
    """In-memory source, used for replays and tests."""

    def __init__(self, items: List[CatalogItem]) -> None:
        self._items = list(items)

    async def fetch_catalog(self) -> List[CatalogItem]:
        return list(self._items)
