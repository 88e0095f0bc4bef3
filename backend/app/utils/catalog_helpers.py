"""
Catalog helper functions shared by the reconcilers.

- Canonical money values (Decimal quantized to cents) for price comparison
- Title normalization for duplicate-product detection
- Product grouping of source variants
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from app.schemas.catalog import CatalogItem

CENT = Decimal("0.01")


def to_money(value: Any) -> Optional[Decimal]:
    """
    Canonical 2-place Decimal for a price given as str, int, float or Decimal.

    Returns None for empty or unparseable values so "10.0" and "10.00"
    compare equal while garbage never matches.
    """
    if value is None or value == "":
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None


def format_money(value: Decimal) -> str:
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def prices_differ(source: Any, destination: Any) -> bool:
    return to_money(source) != to_money(destination)


def normalize_title(item: CatalogItem) -> str:
    """Strip the " - {variant title}" suffix that sources append per variant."""
    title = (item.title or "").strip()
    variant = (item.variant_title or "").strip()
    suffix = f" - {variant}"
    if variant and title.lower().endswith(suffix.lower()) and len(title) > len(suffix):
        return title[: -len(suffix)].strip()
    return title


def titles_match(a: str, b: str) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


def group_by_product(items: Iterable[CatalogItem]) -> Dict[str, List[CatalogItem]]:
    """
    Group variants by source product id (falling back to SKU).

    Items without a SKU are dropped. Insertion order of first appearance is kept.
    """
    groups: Dict[str, List[CatalogItem]] = {}
    for item in items:
        if not item.has_sku:
            continue
        groups.setdefault(item.group_key, []).append(item)
    return groups


def variant_option(item: CatalogItem) -> str:
    return item.variant_title or item.sku
