"""
Unit tests for WooCommerceDestinationClient.

Version: 1.0.0
"""
import json
from decimal import Decimal

import httpx
import pytest

from app.clients.woocommerce_client import WooCommerceDestinationClient, stock_status, to_woocommerce_product_body
from app.schemas.connections import MappingRules
from app.utils.rate_limiter import RateLimiterRegistry
from app.utils.retry import RetryOptions


pytestmark = pytest.mark.unit


def _make_client(mock_settings, handler, base_url="woo.example.com/"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WooCommerceDestinationClient(
        base_url=base_url,
        consumer_key="ck_test",
        consumer_secret="cs_test",
        dispatcher=RateLimiterRegistry(mock_settings),
        retry_options=RetryOptions(max_retries=0),
        http_client=http,
    )


class TestWooCommerceClient:
    def test_domain_is_rate_limit_key(self, mock_settings):
        client = _make_client(mock_settings, lambda r: httpx.Response(200, json=[]))
        assert client.domain == "woo.example.com"

    def test_base_url_required(self, mock_settings):
        with pytest.raises(ValueError):
            _make_client(mock_settings, lambda r: httpx.Response(200), base_url="")

    @pytest.mark.asyncio
    async def test_find_by_sku_exact_with_auth_params(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[{"id": 1, "sku": "A-1"}, {"id": 2, "sku": "A"}])

        client = _make_client(mock_settings, handler)

        product = await client.find_product_by_sku("A")

        assert product["id"] == 2
        url = requests[0].url
        assert url.path == "/wp-json/wc/v3/products"
        assert url.params["consumer_key"] == "ck_test"
        assert url.params["consumer_secret"] == "cs_test"
        assert url.params["sku"] == "A"

    @pytest.mark.asyncio
    async def test_category_found_then_cached(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[{"id": 4, "name": "Shirts & Tops"}, {"id": 9, "name": "shirts"}])

        client = _make_client(mock_settings, handler)

        assert await client.find_or_create_category("Shirts") == 9
        assert await client.find_or_create_category("SHIRTS") == 9
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_category_created_when_missing(self, mock_settings):
        requests = []

        def handler(request):
            requests.append(request)
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(201, json={"id": 15, "name": "Hats"})

        client = _make_client(mock_settings, handler)

        assert await client.find_or_create_category("Hats") == 15
        assert json.loads(requests[1].content) == {"name": "Hats"}


class TestProductBody:
    def test_body(self, make_item, make_connection):
        item = make_item("A", price=Decimal("19.9"), stock=0, barcode="999", weight=1.5, image_url="x.jpg")
        body = to_woocommerce_product_body(item, make_connection(platform="woocommerce"), [3])

        assert body["regular_price"] == "19.90"
        assert body["stock_status"] == "outofstock"
        assert body["manage_stock"] is True
        assert body["status"] == "draft"
        assert body["categories"] == [{"id": 3}]
        assert body["meta_data"] == [{"key": "_barcode", "value": "999"}]
        assert body["weight"] == "1.5"
        assert body["images"] == [{"src": "x.jpg"}]

    def test_body_carries_mapped_metafields(self, make_item, make_connection):
        rules = MappingRules.model_validate({"field_mapping": {"metafields": {"origin": "EU"}}})
        conn = make_connection(platform="woocommerce", rules=rules)

        body = to_woocommerce_product_body(make_item("A", barcode="999"), conn)

        assert body["meta_data"] == [{"key": "origin", "value": "EU"}, {"key": "_barcode", "value": "999"}]

    def test_stock_status(self):
        assert stock_status(3) == "instock"
        assert stock_status(0) == "outofstock"
