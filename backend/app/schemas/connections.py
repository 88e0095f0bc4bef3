"""
Connection schemas — destination targets and their mapping rules.

A Connection is read once when a job is claimed and passed through the run as
an immutable snapshot. Pause/resume or rule edits made while a job is running
take effect on the next claim, not mid-run.
Version: 1.0.0
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.constants.sync import CONNECTION_ACTIVE


def _clean_list(values: Optional[List[str]]) -> List[str]:
    if not values:
        return []
    return [v.strip() for v in values if v and v.strip()]


class RuleFilters(BaseModel):
    """All populated filters must pass (AND semantics)."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    tags: List[str] = Field(default_factory=list, description="Item must carry at least one of these tags")
    exclude_tags: List[str] = Field(default_factory=list, description="Item must carry none of these tags")
    product_type: List[str] = Field(default_factory=list, description="Allowed product types")
    vendor: List[str] = Field(default_factory=list, description="Allowed vendors")
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None
    inventory_min: Optional[int] = None
    inventory_max: Optional[int] = None

    @field_validator("tags", "exclude_tags", "product_type", "vendor", mode="before")
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return _clean_list(v)

    @model_validator(mode="after")
    def check_ranges(self) -> "RuleFilters":
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("price_min must not exceed price_max")
        if (
            self.inventory_min is not None
            and self.inventory_max is not None
            and self.inventory_min > self.inventory_max
        ):
            raise ValueError("inventory_min must not exceed inventory_max")
        return self


class FieldMapping(BaseModel):
    """Overrides that unconditionally replace the item's fields when set."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    product_type: Optional[str] = None
    vendor: Optional[str] = None
    tags: Optional[List[str]] = None
    metafields: Dict[str, str] = Field(
        default_factory=dict,
        description="Metafields set on created products; keys are \"namespace.key\" or a bare key",
    )


class VariantRules(BaseModel):
    """Variant-level rules."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    exclude_variants: List[str] = Field(default_factory=list, description="Variant SKUs never synced")
    map_options: Dict[str, str] = Field(
        default_factory=dict,
        description="Option name renames on created products, e.g. {\"Size\": \"Sizes\"}",
    )

    @field_validator("exclude_variants", mode="before")
    @classmethod
    def strip_skus(cls, v: Any) -> Any:
        if v is None:
            return []
        return _clean_list(v)

    def option_name(self, name: str) -> str:
        return self.map_options.get(name, name)


class MappingRules(BaseModel):
    """
    Per-connection rule set.

    Examples:
        {"price_multiplier": "1.2", "price_adjustment": "-0.5"}
        {"filters": {"tags": ["sale"], "price_min": 5}}
        {"exclude_skus": ["OLD-1"], "field_mapping": {"vendor": "Acme"}}
        {"variant_rules": {"exclude_variants": ["W-XL"], "map_options": {"Size": "Sizes"}}}
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    price_multiplier: Optional[Decimal] = Field(None, gt=0)
    price_adjustment: Optional[Decimal] = None
    filters: RuleFilters = Field(default_factory=RuleFilters)
    field_mapping: FieldMapping = Field(default_factory=FieldMapping)
    exclude_skus: List[str] = Field(default_factory=list)
    include_only_skus: List[str] = Field(default_factory=list)
    variant_rules: VariantRules = Field(default_factory=VariantRules)

    @field_validator("exclude_skus", "include_only_skus", mode="before")
    @classmethod
    def strip_skus(cls, v: Any) -> Any:
        if v is None:
            return []
        return _clean_list(v)

    @classmethod
    def from_raw(cls, raw: Any) -> "MappingRules":
        """Parse rules stored as a JSON string, dict, or null."""
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, MappingRules):
            return raw
        if isinstance(raw, str):
            raw = json.loads(raw)
        return cls.model_validate(raw)


class Connection(BaseModel):
    """Snapshot of a configured destination target."""
    model_config = ConfigDict(frozen=True)

    id: str
    installation_id: Optional[str] = None
    name: Optional[str] = None
    platform: Literal["shopify", "woocommerce"] = "shopify"
    status: Literal["active", "paused", "disabled"] = CONNECTION_ACTIVE
    dest_shop_domain: Optional[str] = None
    base_url: Optional[str] = None
    location_id: Optional[str] = None
    # Ciphertext; decrypted by the secrets collaborator at claim time
    access_token: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    rules: MappingRules = Field(default_factory=MappingRules)
    sync_price: bool = True
    sync_categories: bool = False
    sync_tags: bool = True
    sync_collections: bool = False
    create_products: bool = False
    publish_on_create: bool = False
    last_synced_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == CONNECTION_ACTIVE

    @property
    def syncs_collections(self) -> bool:
        return self.sync_collections or self.sync_categories

    @property
    def destination(self) -> str:
        return self.dest_shop_domain or self.base_url or ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Connection":
        """Build a snapshot from a `connections` table row."""
        data = dict(row)
        data["rules"] = MappingRules.from_raw(data.pop("rules_json", None))
        if data.get("location_id") is not None:
            data["location_id"] = str(data["location_id"])
        known = set(cls.model_fields)
        return cls(**{k: v for k, v in data.items() if k in known})


class ConnectionCreate(BaseModel):
    """Input for creating a connection; credentials are plaintext here."""
    installation_id: Optional[str] = None
    name: Optional[str] = None
    platform: Literal["shopify", "woocommerce"]
    dest_shop_domain: Optional[str] = None
    base_url: Optional[str] = None
    location_id: Optional[str] = None
    access_token: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    rules: MappingRules = Field(default_factory=MappingRules)
    sync_price: bool = True
    sync_categories: bool = False
    sync_tags: bool = True
    sync_collections: bool = False
    create_products: bool = False
    publish_on_create: bool = False

    @model_validator(mode="after")
    def check_destination(self) -> "ConnectionCreate":
        if self.platform == "shopify" and not (self.dest_shop_domain and self.access_token):
            raise ValueError("shopify connections need dest_shop_domain and access_token")
        if self.platform == "woocommerce" and not (
            self.base_url and self.consumer_key and self.consumer_secret
        ):
            raise ValueError("woocommerce connections need base_url, consumer_key and consumer_secret")
        return self


class SyncOptionsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location_id: Optional[str] = None
    sync_price: Optional[bool] = None
    sync_categories: Optional[bool] = None
    sync_tags: Optional[bool] = None
    sync_collections: Optional[bool] = None
    create_products: Optional[bool] = None
    publish_on_create: Optional[bool] = None
