"""
Catalog schemas — source catalog items and collections.

CatalogItem is an in-memory value (never persisted) describing one sellable
variant pulled from a source platform.
Version: 1.0.0
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.core.constants.dispatch import DEFAULT_WEIGHT_UNIT
from app.core.constants.sync import DEFAULT_CURRENCY


class CollectionRule(BaseModel):
    """Smart collection condition, e.g. tag equals "sale"."""
    column: str
    relation: str
    condition: str


class CollectionInfo(BaseModel):
    title: str
    handle: Optional[str] = None
    body_html: Optional[str] = None
    collection_type: Literal["smart", "custom"] = "custom"
    rules: List[CollectionRule] = Field(default_factory=list)
    disjunctive: bool = False
    sort_order: Optional[str] = None


class CatalogItem(BaseModel):
    """
    One source variant.

    `category` is the source product type; it is sent to destinations as
    `product_type` (Shopify) or as a product category (WooCommerce).
    """
    sku: str = ""
    title: str = ""
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    compare_at_price: Optional[Decimal] = None
    currency: str = DEFAULT_CURRENCY
    stock: int = 0
    image_url: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    vendor: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    barcode: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: str = DEFAULT_WEIGHT_UNIT
    variant_title: Optional[str] = None
    option_name: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    inventory_item_id: Optional[str] = None
    product_handle: Optional[str] = None
    collections: List[CollectionInfo] = Field(default_factory=list)
    source: Literal["shopify", "woocommerce"] = "shopify"
    updated_at: Optional[datetime] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_sku(self) -> bool:
        return bool(self.sku and self.sku.strip())

    @property
    def group_key(self) -> str:
        """Source product identifier, falling back to SKU."""
        return self.product_id or self.sku

    @property
    def all_images(self) -> List[str]:
        """Primary image first, then the rest without duplicates."""
        ordered: List[str] = []
        for src in ([self.image_url] if self.image_url else []) + list(self.images):
            if src and src not in ordered:
                ordered.append(src)
        return ordered
