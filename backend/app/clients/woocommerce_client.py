import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from app.clients.destination_base import DestinationClient
from app.core.constants.dispatch import BARCODE_META_KEY, WOOCOMMERCE_API_PREFIX, WOOCOMMERCE_SERVICE
from app.schemas.catalog import CatalogItem
from app.schemas.connections import Connection
from app.utils.catalog_helpers import format_money, titles_match
from app.utils.rate_limiter import RateLimiterRegistry
from app.utils.retry import RetryOptions

logger = logging.getLogger("woocommerce_client")


class WooCommerceDestinationClient(DestinationClient):
    """WooCommerce REST (wc/v3) client for one destination store."""

    service = WOOCOMMERCE_SERVICE

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        dispatcher: RateLimiterRegistry,
        retry_options: Optional[RetryOptions] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        base_url = self._normalize_base_url(base_url)
        super().__init__(urlparse(base_url).netloc.lower(), dispatcher, retry_options, timeout, http_client)
        self._base_url = base_url
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._category_ids: Dict[str, int] = {}
        logger.info(f"WooCommerceDestinationClient initialized: base_url={base_url}")

    @staticmethod
    def _normalize_base_url(base_url: Optional[str]) -> str:
        if not base_url:
            raise ValueError("WooCommerce base URL is required")
        base_url = base_url.strip().rstrip("/")
        if not base_url.startswith(("http://", "https://")):
            base_url = f"https://{base_url}"
        return base_url

    async def _call_woo(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        query = {"consumer_key": self._consumer_key, "consumer_secret": self._consumer_secret}
        query.update(params or {})
        url = f"{self._base_url}{WOOCOMMERCE_API_PREFIX}{path}"
        return await self._request(method, url, path, json=json, params=query)

    async def find_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        products = await self._call_woo("GET", "/products", params={"sku": sku})
        for product in products or []:
            if product.get("sku") == sku:
                return product
        return None

    async def create_product(self, body: Dict[str, Any]) -> Dict[str, Any]:
        product = await self._call_woo("POST", "/products", json=body)
        logger.info(f"woocommerce product created id={product.get('id')} sku={body.get('sku')}")
        return product

    async def update_product(self, product_id: str | int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call_woo("PUT", f"/products/{product_id}", json=body)

    async def find_or_create_category(self, name: str) -> Optional[int]:
        """Resolve a category id by name, creating the category when missing."""
        key = name.strip().casefold()
        if not key:
            return None
        if key in self._category_ids:
            return self._category_ids[key]

        found = await self._call_woo("GET", "/products/categories", params={"search": name, "per_page": 100})
        category_id = None
        for category in found or []:
            if titles_match(category.get("name", ""), name):
                category_id = category.get("id")
                break
        if category_id is None:
            created = await self._call_woo("POST", "/products/categories", json={"name": name})
            category_id = created.get("id")
            logger.info(f"woocommerce category created name={name} id={category_id}")

        if category_id is not None:
            self._category_ids[key] = int(category_id)
            return int(category_id)
        return None


def stock_status(quantity: int) -> str:
    return "instock" if quantity > 0 else "outofstock"


def to_woocommerce_product_body(
    item: CatalogItem,
    connection: Connection,
    category_ids: Optional[List[int]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "name": item.title,
        "type": "simple",
        "regular_price": format_money(item.price),
        "description": item.description or "",
        "sku": item.sku,
        "manage_stock": True,
        "stock_quantity": item.stock,
        "stock_status": stock_status(item.stock),
        "status": "publish" if connection.publish_on_create else "draft",
        "images": [{"src": src} for src in item.all_images],
    }
    if item.weight is not None:
        body["weight"] = str(item.weight)
    if category_ids:
        body["categories"] = [{"id": category_id} for category_id in category_ids]
    meta_data = [{"key": key, "value": value} for key, value in connection.rules.field_mapping.metafields.items()]
    if item.barcode:
        meta_data.append({"key": BARCODE_META_KEY, "value": item.barcode})
    if meta_data:
        body["meta_data"] = meta_data
    return body
