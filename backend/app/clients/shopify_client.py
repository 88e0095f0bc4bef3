import logging
from typing import Any, Dict, List, Optional

import httpx

from app.clients.destination_base import DestinationClient
from app.core.constants.dispatch import (
    SHOPIFY_INVENTORY_MANAGEMENT,
    SHOPIFY_INVENTORY_POLICY,
    SHOPIFY_METAFIELD_NAMESPACE,
    SHOPIFY_METAFIELD_TYPE,
    SHOPIFY_OPTION_NAME,
    SHOPIFY_SERVICE,
    SHOPIFY_SMART_SORT_ORDER,
    TITLE_SEARCH_LIMIT,
)
from app.core.exceptions import ExternalAPIError
from app.schemas.catalog import CatalogItem, CollectionInfo
from app.schemas.connections import Connection
from app.utils.catalog_helpers import format_money, titles_match, variant_option
from app.utils.rate_limiter import DispatchTier, RateLimiterRegistry
from app.utils.retry import RetryOptions

logger = logging.getLogger("shopify_client")


class ShopifyDestinationClient(DestinationClient):
    """Shopify Admin REST client for one destination store."""

    service = SHOPIFY_SERVICE

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        dispatcher: RateLimiterRegistry,
        api_version: str = "2024-10",
        retry_options: Optional[RetryOptions] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        domain = self._normalize_store_domain(shop_domain)
        super().__init__(domain, dispatcher, retry_options, timeout, http_client)
        self._token = access_token
        self._api_version = api_version
        logger.info(f"ShopifyDestinationClient initialized: domain={domain}")

    @staticmethod
    def _normalize_store_domain(domain: Optional[str]) -> str:
        """
        Normalize Shopify store domain to ensure it has .myshopify.com suffix.

        Handles these formats:
        - "my-store" -> "my-store.myshopify.com"
        - "my-store.myshopify.com" -> "my-store.myshopify.com" (unchanged)
        - "https://my-store.myshopify.com/" -> "my-store.myshopify.com"
        """
        if not domain:
            raise ValueError("Shopify store domain is required")
        domain = domain.strip().replace("https://", "").replace("http://", "").rstrip("/")
        if "." not in domain:
            domain = f"{domain}.myshopify.com"
        return domain.lower()

    def _base_url(self) -> str:
        return f"https://{self.domain}/admin/api/{self._api_version}"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["X-Shopify-Access-Token"] = self._token or ""
        return headers

    async def _call_shopify(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        tier: DispatchTier = DispatchTier.GENERAL,
    ) -> Dict[str, Any]:
        return await self._request(method, f"{self._base_url()}{path}", path, tier=tier, json=json, params=params)

    # ------------------------------------------------------------------
    # Products and variants
    # ------------------------------------------------------------------

    async def find_variant_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        """
        Exact SKU lookup.

        The variant search can return fuzzy matches, so results are checked
        for an exact SKU before being trusted.
        """
        data = await self._call_shopify("GET", "/variants.json", params={"sku": sku, "limit": 50})
        for variant in data.get("variants") or []:
            if variant.get("sku") == sku:
                return variant
        return None

    async def get_product(self, product_id: str | int) -> Optional[Dict[str, Any]]:
        data = await self._call_shopify("GET", f"/products/{product_id}.json")
        return data.get("product")

    async def find_product_by_title(self, title: str) -> Optional[Dict[str, Any]]:
        """First product whose title equals `title` (case-insensitive)."""
        params = {"title": title, "limit": TITLE_SEARCH_LIMIT, "fields": "id,title,variants"}
        data = await self._call_shopify("GET", "/products.json", params=params)
        for product in data.get("products") or []:
            if titles_match(product.get("title", ""), title):
                return product
        return None

    async def create_product(self, body: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._call_shopify("POST", "/products.json", json={"product": body})
        product = data.get("product") or {}
        logger.info(f"shopify product created id={product.get('id')} title={body.get('title')}")
        return product

    async def add_variant(self, product_id: str | int, variant: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._call_shopify("POST", f"/products/{product_id}/variants.json", json={"variant": variant})
        return data.get("variant") or {}

    async def update_variant_price(self, variant_id: str | int, price: str) -> Dict[str, Any]:
        payload = {"variant": {"id": int(variant_id), "price": price}}
        data = await self._call_shopify("PUT", f"/variants/{variant_id}.json", json=payload)
        return data.get("variant") or {}

    async def set_inventory_level(self, location_id: str | int, inventory_item_id: str | int, available: int) -> None:
        payload = {
            "location_id": int(location_id),
            "inventory_item_id": int(inventory_item_id),
            "available": int(available),
        }
        await self._call_shopify("POST", "/inventory_levels/set.json", json=payload, tier=DispatchTier.INVENTORY)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def _find_collection(self, kind: str, title: str) -> Optional[Dict[str, Any]]:
        data = await self._call_shopify("GET", f"/{kind}.json", params={"title": title})
        for collection in data.get(kind) or []:
            if titles_match(collection.get("title", ""), title):
                return collection
        return None

    async def find_smart_collection(self, title: str) -> Optional[Dict[str, Any]]:
        return await self._find_collection("smart_collections", title)

    async def find_custom_collection(self, title: str) -> Optional[Dict[str, Any]]:
        return await self._find_collection("custom_collections", title)

    async def create_smart_collection(self, collection: CollectionInfo) -> Dict[str, Any]:
        body = {
            "title": collection.title,
            "body_html": collection.body_html or "",
            "published": True,
            "disjunctive": collection.disjunctive,
            "rules": [rule.model_dump() for rule in collection.rules],
            "sort_order": collection.sort_order or SHOPIFY_SMART_SORT_ORDER,
        }
        data = await self._call_shopify("POST", "/smart_collections.json", json={"smart_collection": body})
        return data.get("smart_collection") or {}

    async def create_custom_collection(self, collection: CollectionInfo) -> Dict[str, Any]:
        body = {
            "title": collection.title,
            "body_html": collection.body_html or "",
            "published": True,
        }
        data = await self._call_shopify("POST", "/custom_collections.json", json={"custom_collection": body})
        return data.get("custom_collection") or {}

    async def add_product_to_collection(self, product_id: str | int, collection_id: str | int) -> bool:
        """Associate a product with a custom collection. Returns False if already associated."""
        payload = {"collect": {"product_id": int(product_id), "collection_id": int(collection_id)}}
        try:
            await self._call_shopify("POST", "/collects.json", json=payload)
        except ExternalAPIError as exc:
            if exc.status_code == 422 and "already" in str(exc).lower():
                logger.debug(f"product {product_id} already in collection {collection_id}")
                return False
            raise
        return True


# ----------------------------------------------------------------------
# Payload builders
# ----------------------------------------------------------------------

def to_shopify_variant(item: CatalogItem, position: Optional[int] = None) -> Dict[str, Any]:
    variant: Dict[str, Any] = {
        "sku": item.sku,
        "barcode": item.barcode or "",
        "price": format_money(item.price),
        "compare_at_price": format_money(item.compare_at_price) if item.compare_at_price is not None else None,
        "inventory_management": SHOPIFY_INVENTORY_MANAGEMENT,
        "inventory_policy": SHOPIFY_INVENTORY_POLICY,
        "weight": item.weight or 0,
        "weight_unit": item.weight_unit,
        "option1": variant_option(item),
    }
    if position is not None:
        variant["position"] = position
    return variant


def to_shopify_product_body(items: List[CatalogItem], title: str, connection: Connection) -> Dict[str, Any]:
    """
    Product creation payload carrying every variant at once.

    Description, vendor, tags and images come from the first item; images
    are merged across variants without duplicates. The option name and
    metafields follow the connection's variant rules and field mapping.
    """
    first = items[0]
    option_name = connection.rules.variant_rules.option_name(first.option_name or SHOPIFY_OPTION_NAME)
    images: List[str] = []
    for item in items:
        for src in item.all_images:
            if src not in images:
                images.append(src)

    body: Dict[str, Any] = {
        "title": title,
        "body_html": first.description or "",
        "vendor": first.vendor or "",
        "status": "active" if connection.publish_on_create else "draft",
        "variants": [to_shopify_variant(item, position) for position, item in enumerate(items, start=1)],
        "options": [{"name": option_name, "values": [variant_option(item) for item in items]}],
        "images": [{"src": src} for src in images],
    }
    if connection.sync_categories and first.category:
        body["product_type"] = first.category
    if connection.sync_tags and first.tags:
        body["tags"] = ", ".join(first.tags)
    metafields = to_shopify_metafields(connection.rules.field_mapping.metafields)
    if metafields:
        body["metafields"] = metafields
    return body


def to_shopify_metafields(mapping: Dict[str, str]) -> List[Dict[str, str]]:
    """{"namespace.key": value} -> Shopify metafields; bare keys use the default namespace."""
    metafields = []
    for name, value in mapping.items():
        namespace, _, key = name.rpartition(".")
        metafields.append({
            "namespace": namespace or SHOPIFY_METAFIELD_NAMESPACE,
            "key": key,
            "value": value,
            "type": SHOPIFY_METAFIELD_TYPE,
        })
    return metafields
