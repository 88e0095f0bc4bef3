"""
Unit tests for ShopifyDestinationClient.

Tests domain normalization, exact SKU/title matching, request payloads,
tier routing, error mapping and retry through the dispatcher. HTTP is
served by httpx.MockTransport.

Version: 1.0.0
"""
import json
from decimal import Decimal

import httpx
import pytest

from app.clients.shopify_client import ShopifyDestinationClient, to_shopify_product_body, to_shopify_variant
from app.core.exceptions import ExternalAPIError, RateLimitError
from app.schemas.catalog import CollectionInfo, CollectionRule
from app.schemas.connections import MappingRules
from app.utils.rate_limiter import RateLimiterRegistry
from app.utils.retry import RetryOptions


pytestmark = pytest.mark.unit

FAST_RETRY = RetryOptions(max_retries=2, base_delay=0.0, max_delay=0.0, jitter_ratio=0.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_client(mock_settings, handler, domain="dest-store.myshopify.com"):
    """Client whose HTTP goes to `handler`; returns (client, registry)."""
    registry = RateLimiterRegistry(mock_settings)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ShopifyDestinationClient(
        shop_domain=domain,
        access_token="shpat_test",
        dispatcher=registry,
        retry_options=FAST_RETRY,
        http_client=http,
    )
    return client, registry


def _json(request):
    return json.loads(request.content) if request.content else None


# ---------------------------------------------------------------------------
# _normalize_store_domain
# ---------------------------------------------------------------------------

class TestNormalizeStoreDomain:
    def test_bare_domain_appends_myshopify(self):
        assert ShopifyDestinationClient._normalize_store_domain("test-store") == "test-store.myshopify.com"

    def test_full_https_url_stripped(self):
        result = ShopifyDestinationClient._normalize_store_domain("https://Test-Store.myshopify.com/")
        assert result == "test-store.myshopify.com"

    def test_custom_domain_kept(self):
        assert ShopifyDestinationClient._normalize_store_domain("shop.example.com") == "shop.example.com"

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            ShopifyDestinationClient._normalize_store_domain("")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class TestLookups:
    @pytest.mark.asyncio
    async def test_find_variant_requires_exact_sku(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"variants": [{"id": 1, "sku": "ABC-1"}, {"id": 2, "sku": "ABC"}]})

        client, _ = _make_client(mock_settings, handler)

        variant = await client.find_variant_by_sku("ABC")

        assert variant["id"] == 2
        assert requests[0].url.path == "/admin/api/2024-10/variants.json"
        assert requests[0].url.params["sku"] == "ABC"
        assert requests[0].headers["X-Shopify-Access-Token"] == "shpat_test"

    @pytest.mark.asyncio
    async def test_find_variant_fuzzy_only(self, mock_settings):
        client, _ = _make_client(mock_settings, lambda r: httpx.Response(200, json={"variants": [{"sku": "ABC-1"}]}))
        assert await client.find_variant_by_sku("ABC") is None

    @pytest.mark.asyncio
    async def test_find_product_by_title_case_insensitive(self, mock_settings):
        products = {"products": [{"id": 5, "title": "Widget Deluxe"}, {"id": 6, "title": "widget"}]}
        client, _ = _make_client(mock_settings, lambda r: httpx.Response(200, json=products))

        product = await client.find_product_by_title("Widget")

        assert product["id"] == 6


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestMutations:
    @pytest.mark.asyncio
    async def test_update_variant_price(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"variant": {"id": 11, "price": "12.50"}})

        client, _ = _make_client(mock_settings, handler)
        await client.update_variant_price("11", "12.50")

        assert requests[0].method == "PUT"
        assert requests[0].url.path.endswith("/variants/11.json")
        assert _json(requests[0]) == {"variant": {"id": 11, "price": "12.50"}}

    @pytest.mark.asyncio
    async def test_inventory_uses_inventory_tier(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"inventory_level": {}})

        client, registry = _make_client(mock_settings, handler)
        await client.set_inventory_level("9001", "333", 7)

        assert _json(requests[0]) == {"location_id": 9001, "inventory_item_id": 333, "available": 7}
        assert list(registry.get_status()) == ["dest-store.myshopify.com/inventory"]

    @pytest.mark.asyncio
    async def test_add_product_to_collection_already_present(self, mock_settings):
        def handler(request):
            return httpx.Response(422, json={"errors": {"product_id": ["already exists in this collection"]}})

        client, _ = _make_client(mock_settings, handler)
        assert await client.add_product_to_collection(1, 2) is False

    @pytest.mark.asyncio
    async def test_create_smart_collection_payload(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"smart_collection": {"id": 50, "title": "Sale"}})

        client, _ = _make_client(mock_settings, handler)
        info = CollectionInfo(
            title="Sale",
            collection_type="smart",
            rules=[CollectionRule(column="tag", relation="equals", condition="sale")],
            disjunctive=True,
        )

        created = await client.create_smart_collection(info)

        body = _json(requests[0])["smart_collection"]
        assert created["id"] == 50
        assert body["rules"] == [{"column": "tag", "relation": "equals", "condition": "sale"}]
        assert body["disjunctive"] is True
        assert body["sort_order"] == "best-selling"


# ---------------------------------------------------------------------------
# Errors and retry
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.asyncio
    async def test_transient_error_retried(self, mock_settings):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"variants": []})

        client, _ = _make_client(mock_settings, handler)

        assert await client.find_variant_by_sku("A") is None
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, mock_settings):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            return httpx.Response(401, text="Invalid API key")

        client, _ = _make_client(mock_settings, handler)

        with pytest.raises(ExternalAPIError) as exc_info:
            await client.find_variant_by_sku("A")
        assert exc_info.value.status_code == 401
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_rate_limit_maps_retry_after(self, mock_settings):
        client, _ = _make_client(
            mock_settings, lambda r: httpx.Response(429, headers={"Retry-After": "0"}, text="slow down")
        )

        with pytest.raises(RateLimitError) as exc_info:
            await client.find_variant_by_sku("A")
        assert exc_info.value.retry_after == 0.0
        assert exc_info.value.attempts == 3


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

class TestPayloadBuilders:
    def test_variant(self, make_item):
        item = make_item("A", price=Decimal("9.5"), variant_title="Red", barcode="123")
        variant = to_shopify_variant(item, position=2)
        assert variant["price"] == "9.50"
        assert variant["option1"] == "Red"
        assert variant["barcode"] == "123"
        assert variant["inventory_management"] == "shopify"
        assert variant["inventory_policy"] == "deny"
        assert variant["position"] == 2

    def test_product_body_respects_options(self, make_item, make_connection):
        items = [
            make_item("A", variant_title="Red", category="Shirts", image_url="a.jpg"),
            make_item("B", variant_title="Blue", images=["a.jpg", "b.jpg"]),
        ]

        body = to_shopify_product_body(items, "Widget", make_connection(sync_categories=False, sync_tags=True))

        assert body["title"] == "Widget"
        assert body["status"] == "draft"
        assert [v["sku"] for v in body["variants"]] == ["A", "B"]
        assert body["options"] == [{"name": "Option", "values": ["Red", "Blue"]}]
        assert body["images"] == [{"src": "a.jpg"}, {"src": "b.jpg"}]
        assert body["tags"] == "new"
        assert "product_type" not in body

    def test_product_body_published_with_type(self, make_item, make_connection):
        conn = make_connection(publish_on_create=True, sync_categories=True, sync_tags=False)
        body = to_shopify_product_body([make_item("A", category="Shirts")], "Shirt", conn)
        assert body["status"] == "active"
        assert body["product_type"] == "Shirts"
        assert "tags" not in body
        assert "metafields" not in body

    def test_product_body_maps_option_name_and_metafields(self, make_item, make_connection):
        rules = MappingRules.model_validate({
            "field_mapping": {"metafields": {"specs.origin": "EU", "material": "cotton"}},
            "variant_rules": {"map_options": {"Size": "Sizes"}},
        })
        items = [make_item("S", variant_title="S", option_name="Size"), make_item("M", variant_title="M", option_name="Size")]

        body = to_shopify_product_body(items, "Shirt", make_connection(rules=rules))

        assert body["options"] == [{"name": "Sizes", "values": ["S", "M"]}]
        assert body["metafields"] == [
            {"namespace": "specs", "key": "origin", "value": "EU", "type": "single_line_text_field"},
            {"namespace": "custom", "key": "material", "value": "cotton", "type": "single_line_text_field"},
        ]
