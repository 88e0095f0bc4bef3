"""
Shopify source catalog — reads active products of the source store.

Pages through /products.json with the Link header cursor and flattens every
variant with a SKU into a CatalogItem. Collections of each product are
resolved through /collects.json (smart first, then custom).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.exceptions import ExternalAPIError
from app.schemas.catalog import CatalogItem, CollectionInfo, CollectionRule
from app.utils.retry import RetryOptions, retry_with_backoff

logger = logging.getLogger("shopify_source")

PAGE_LIMIT = 250
DEFAULT_VARIANT_TITLE = "Default Title"
DEFAULT_OPTION_NAME = "Title"


class ShopifySourceCatalog:
    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2024-10",
        retry_options: Optional[RetryOptions] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._domain = shop_domain.replace("https://", "").replace("http://", "").rstrip("/")
        self._token = access_token
        self._api_version = api_version
        self._retry_options = retry_options or RetryOptions()
        self._timeout = timeout
        self._http_client = http_client

    def _url(self, path: str) -> str:
        return f"https://{self._domain}/admin/api/{self._api_version}{path}"

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        headers = {"X-Shopify-Access-Token": self._token, "Accept": "application/json"}

        async def attempt() -> httpx.Response:
            if self._http_client is not None:
                resp = await self._http_client.get(url, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(url, headers=headers, params=params)
            if resp.status_code >= 400:
                raise ExternalAPIError("Shopify source", f"{resp.status_code} on {url}", status_code=resp.status_code)
            return resp

        return await retry_with_backoff(attempt, self._retry_options, label=f"source GET {url}")

    async def fetch_catalog(self) -> List[CatalogItem]:
        items: List[CatalogItem] = []
        collections_cache: Dict[str, List[CollectionInfo]] = {}
        next_url: Optional[str] = self._url("/products.json")
        params: Optional[Dict[str, Any]] = {"status": "active", "limit": PAGE_LIMIT}

        while next_url:
            resp = await self._get(next_url, params)
            for product in resp.json().get("products") or []:
                product_id = str(product.get("id"))
                if product_id not in collections_cache:
                    collections_cache[product_id] = await self._product_collections(product_id)
                items.extend(to_catalog_items(product, collections_cache[product_id]))
            next_url = resp.links.get("next", {}).get("url")
            # Cursor URLs already carry the query
            params = None

        logger.info(f"[SOURCE] Shopify {self._domain}: {len(items)} variants")
        return items

    async def _product_collections(self, product_id: str) -> List[CollectionInfo]:
        resp = await self._get(self._url("/collects.json"), {"product_id": product_id})
        collections: List[CollectionInfo] = []
        for collect in resp.json().get("collects") or []:
            collection_id = collect.get("collection_id")
            info = await self._collection(collection_id)
            if info is not None:
                collections.append(info)
        return collections

    async def _collection(self, collection_id: Any) -> Optional[CollectionInfo]:
        for kind in ("smart_collection", "custom_collection"):
            try:
                resp = await self._get(self._url(f"/{kind}s/{collection_id}.json"))
            except ExternalAPIError as exc:
                if exc.status_code == 404:
                    continue
                raise
            data = resp.json().get(kind)
            if data:
                return to_collection_info(data, "smart" if kind == "smart_collection" else "custom")
        return None


def to_collection_info(data: Dict[str, Any], collection_type: str) -> CollectionInfo:
    return CollectionInfo(
        title=data.get("title") or "",
        handle=data.get("handle"),
        body_html=data.get("body_html"),
        collection_type=collection_type,
        rules=[CollectionRule(**{k: r.get(k, "") for k in ("column", "relation", "condition")})
               for r in data.get("rules") or []],
        disjunctive=bool(data.get("disjunctive")),
        sort_order=data.get("sort_order"),
    )


def to_catalog_items(product: Dict[str, Any], collections: List[CollectionInfo]) -> List[CatalogItem]:
    """Flatten one source product into per-variant CatalogItems (variants without SKU dropped)."""
    images = [img.get("src") for img in product.get("images") or [] if img.get("src")]
    tags = [t.strip() for t in (product.get("tags") or "").split(",") if t.strip()]
    product_title = product.get("title") or ""
    options = product.get("options") or []
    option_name = options[0].get("name") if options else None
    if option_name == DEFAULT_OPTION_NAME:
        option_name = None

    items: List[CatalogItem] = []
    for variant in product.get("variants") or []:
        sku = (variant.get("sku") or "").strip()
        if not sku:
            continue
        variant_title = variant.get("title")
        if variant_title == DEFAULT_VARIANT_TITLE:
            variant_title = None
        items.append(CatalogItem(
            sku=sku,
            title=f"{product_title} - {variant_title}" if variant_title else product_title,
            description=product.get("body_html"),
            price=variant.get("price") or "0",
            compare_at_price=variant.get("compare_at_price") or None,
            stock=variant.get("inventory_quantity") or 0,
            image_url=images[0] if images else None,
            images=images,
            category=product.get("product_type") or None,
            vendor=product.get("vendor") or None,
            tags=tags,
            barcode=variant.get("barcode") or None,
            weight=variant.get("weight"),
            weight_unit=variant.get("weight_unit") or "kg",
            variant_title=variant_title,
            option_name=option_name,
            product_id=str(product.get("id")),
            variant_id=str(variant.get("id")),
            inventory_item_id=str(variant["inventory_item_id"]) if variant.get("inventory_item_id") else None,
            product_handle=product.get("handle"),
            collections=collections,
            source="shopify",
            updated_at=product.get("updated_at"),
        ))
    return items
