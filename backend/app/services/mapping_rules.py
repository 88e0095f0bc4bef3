"""
Mapping Rules Engine — decides skip/keep per catalog item and applies transforms.

Evaluation order:
1. SKU deny-list, then the variant deny-list
2. SKU allow-list (when non-empty)
3. Tag / type / vendor / price / stock filters (all must pass). Tags compare
   case-insensitively; product type and vendor must match exactly.
4. Price multiplier, then fixed adjustment, then field-mapping overrides

Pure: the input item is never mutated.
Version: 1.0.0
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from app.schemas.catalog import CatalogItem
from app.schemas.connections import MappingRules, RuleFilters

logger = logging.getLogger("mapping_rules")

CENT = Decimal("0.01")

SKIP_EXCLUDED_SKU = "Excluded SKU"
SKIP_EXCLUDED_VARIANT = "Excluded variant"
SKIP_NOT_ALLOWED = "Not in SKU allow-list"
SKIP_FILTERED = "Filtered out by mapping rules"


def _lower(values: Iterable[str]) -> set:
    return {v.casefold() for v in values}


def _passes_filters(item: CatalogItem, filters: RuleFilters) -> bool:
    item_tags = _lower(item.tags)

    if filters.tags and not (item_tags & _lower(filters.tags)):
        return False
    if filters.exclude_tags and (item_tags & _lower(filters.exclude_tags)):
        return False
    if filters.product_type and (item.category or "") not in filters.product_type:
        return False
    if filters.vendor and (item.vendor or "") not in filters.vendor:
        return False
    if filters.price_min is not None and item.price < filters.price_min:
        return False
    if filters.price_max is not None and item.price > filters.price_max:
        return False
    if filters.inventory_min is not None and item.stock < filters.inventory_min:
        return False
    if filters.inventory_max is not None and item.stock > filters.inventory_max:
        return False
    return True


def skip_reason(item: CatalogItem, rules: MappingRules) -> Optional[str]:
    """Why the rules drop this item, or None when it is kept."""
    if item.sku in rules.exclude_skus:
        return SKIP_EXCLUDED_SKU
    if item.sku in rules.variant_rules.exclude_variants:
        return SKIP_EXCLUDED_VARIANT
    if rules.include_only_skus and item.sku not in rules.include_only_skus:
        return SKIP_NOT_ALLOWED
    if not _passes_filters(item, rules.filters):
        return SKIP_FILTERED
    return None


def should_skip(item: CatalogItem, rules: MappingRules) -> bool:
    return skip_reason(item, rules) is not None


def _apply_price(price: Decimal, rules: MappingRules) -> Decimal:
    if rules.price_multiplier is not None:
        price = (price * rules.price_multiplier).quantize(CENT, rounding=ROUND_HALF_UP)
    if rules.price_adjustment is not None:
        price = (price + rules.price_adjustment).quantize(CENT, rounding=ROUND_HALF_UP)
    return price


def evaluate(item: CatalogItem, rules: MappingRules) -> Tuple[CatalogItem, bool]:
    """
    Evaluate one item against a rule set.

    Args:
        item: Source catalog item
        rules: Connection rule set

    Returns:
        (transformed_item, skip). When skip is True the item is returned unchanged.
    """
    if should_skip(item, rules):
        return item, True

    updates = {}
    if rules.price_multiplier is not None or rules.price_adjustment is not None:
        updates["price"] = _apply_price(item.price, rules)

    mapping = rules.field_mapping
    if mapping.product_type is not None:
        updates["category"] = mapping.product_type
    if mapping.vendor is not None:
        updates["vendor"] = mapping.vendor
    if mapping.tags is not None:
        updates["tags"] = list(mapping.tags)

    if not updates:
        return item, False
    return item.model_copy(update=updates), False


def apply_rules(items: Iterable[CatalogItem], rules: MappingRules) -> Tuple[List[CatalogItem], List[CatalogItem]]:
    """Split items into (kept_and_transformed, skipped)."""
    kept: List[CatalogItem] = []
    skipped: List[CatalogItem] = []
    for item in items:
        transformed, skip = evaluate(item, rules)
        if skip:
            skipped.append(item)
        else:
            kept.append(transformed)
    if skipped:
        logger.info(f"[RULES] Skipped {len(skipped)} of {len(kept) + len(skipped)} items by mapping rules")
    return kept, skipped
