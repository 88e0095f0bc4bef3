"""
Unit tests for source catalogs: Shopify source flattening and paging,
multi-source merging and delta SKU filtering.

Version: 1.0.0
"""
from decimal import Decimal

import httpx
import pytest

from app.clients.shopify_source import ShopifySourceCatalog, to_catalog_items
from app.services.source_catalog import (
    CompositeSourceCatalog,
    StaticSourceCatalog,
    filter_by_skus,
    merge_source_catalogs,
)
from app.utils.retry import RetryOptions


pytestmark = pytest.mark.unit


PRODUCT = {
    "id": 100,
    "title": "Widget",
    "body_html": "<p>Nice</p>",
    "vendor": "Acme",
    "product_type": "Gadgets",
    "handle": "widget",
    "tags": "sale, new ,",
    "images": [{"src": "https://cdn/a.jpg"}, {"src": "https://cdn/b.jpg"}],
    "variants": [
        {"id": 1, "sku": "W-RED", "title": "Red", "price": "10.00", "inventory_quantity": 4, "inventory_item_id": 501},
        {"id": 2, "sku": "", "title": "Blue", "price": "10.00", "inventory_quantity": 2},
    ],
}


# ---------------------------------------------------------------------------
# Shopify source
# ---------------------------------------------------------------------------

class TestToCatalogItems:
    def test_flattens_variants_with_sku(self):
        items = to_catalog_items(PRODUCT, [])

        assert [i.sku for i in items] == ["W-RED"]
        item = items[0]
        assert item.title == "Widget - Red"
        assert item.variant_title == "Red"
        assert item.price == Decimal("10.00")
        assert item.stock == 4
        assert item.tags == ["sale", "new"]
        assert item.category == "Gadgets"
        assert item.product_id == "100"
        assert item.inventory_item_id == "501"
        assert item.image_url == "https://cdn/a.jpg"

    def test_option_name_captured(self):
        product = dict(PRODUCT, options=[{"name": "Color", "values": ["Red"]}])
        assert to_catalog_items(product, [])[0].option_name == "Color"

    def test_default_option_name_dropped(self):
        product = dict(PRODUCT, options=[{"name": "Title", "values": ["Default Title"]}])
        assert to_catalog_items(product, [])[0].option_name is None

    def test_default_title_variant(self):
        product = dict(PRODUCT, variants=[{"id": 3, "sku": "W", "title": "Default Title", "price": "5"}])
        item = to_catalog_items(product, [])[0]
        assert item.title == "Widget"
        assert item.variant_title is None


class TestShopifySourceCatalog:
    @pytest.mark.asyncio
    async def test_pages_and_resolves_collections(self):
        requests = []
        page_two = "https://source.myshopify.com/admin/api/2024-10/products.json?page_info=abc&limit=250"

        def handler(request):
            requests.append(request)
            path = request.url.path
            if path.endswith("/products.json") and "page_info" not in request.url.params:
                return httpx.Response(200, json={"products": [PRODUCT]}, headers={"Link": f'<{page_two}>; rel="next"'})
            if path.endswith("/products.json"):
                second = dict(PRODUCT, id=200, variants=[{"id": 9, "sku": "G-1", "title": "Default Title"}])
                return httpx.Response(200, json={"products": [second]})
            if path.endswith("/collects.json"):
                return httpx.Response(200, json={"collects": [{"collection_id": 77}]})
            if path.endswith("/smart_collections/77.json"):
                return httpx.Response(404, json={"errors": "Not Found"})
            if path.endswith("/custom_collections/77.json"):
                return httpx.Response(200, json={"custom_collection": {"title": "Featured", "handle": "featured"}})
            return httpx.Response(500)

        source = ShopifySourceCatalog(
            "https://source.myshopify.com/",
            "shpat_source",
            retry_options=RetryOptions(max_retries=0),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        items = await source.fetch_catalog()

        assert [i.sku for i in items] == ["W-RED", "G-1"]
        assert items[0].collections[0].title == "Featured"
        assert items[0].collections[0].collection_type == "custom"
        assert requests[0].url.params["status"] == "active"


# ---------------------------------------------------------------------------
# Merging and filtering
# ---------------------------------------------------------------------------

class TestMerge:
    def test_primary_source_wins(self, make_item):
        woo = [make_item("A", source="woocommerce", price=Decimal("1"))]
        shop = [make_item("A", source="shopify", price=Decimal("2")), make_item("B", source="shopify")]

        merged = merge_source_catalogs([woo, shop], primary_source="shopify")

        assert [i.sku for i in merged] == ["A", "B"]
        assert merged[0].price == Decimal("2")

    def test_first_seen_wins_between_non_primary(self, make_item):
        a = [make_item("A", source="woocommerce", price=Decimal("1"))]
        b = [make_item("A", source="woocommerce", price=Decimal("2"))]
        assert merge_source_catalogs([a, b])[0].price == Decimal("1")

    def test_items_without_sku_dropped(self, make_item):
        assert merge_source_catalogs([[make_item(""), make_item("A")]])[0].sku == "A"

    def test_filter_by_skus(self, make_item):
        items = [make_item("A"), make_item("B"), make_item("C")]
        assert [i.sku for i in filter_by_skus(items, ["C", "A"])] == ["A", "C"]
        assert filter_by_skus(items, None) == items
        assert filter_by_skus(items, []) == []

    @pytest.mark.asyncio
    async def test_composite_source(self, make_item):
        composite = CompositeSourceCatalog([
            StaticSourceCatalog([make_item("A", source="woocommerce")]),
            StaticSourceCatalog([make_item("A"), make_item("B")]),
        ])
        items = await composite.fetch_catalog()
        assert [(i.sku, i.source) for i in items] == [("A", "shopify"), ("B", "shopify")]
