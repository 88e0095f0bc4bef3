"""
Dispatch constants — rate tiers, collection types, destination defaults.

Version: 1.0.0
"""

TIER_GENERAL: str = "general"
TIER_INVENTORY: str = "inventory"

COLLECTION_SMART: str = "smart"
COLLECTION_CUSTOM: str = "custom"

# Shopify
SHOPIFY_SERVICE: str = "Shopify"
SHOPIFY_OPTION_NAME: str = "Option"
SHOPIFY_METAFIELD_NAMESPACE: str = "custom"
SHOPIFY_METAFIELD_TYPE: str = "single_line_text_field"
SHOPIFY_INVENTORY_MANAGEMENT: str = "shopify"
SHOPIFY_INVENTORY_POLICY: str = "deny"
SHOPIFY_SMART_SORT_ORDER: str = "best-selling"
TITLE_SEARCH_LIMIT: int = 50

# WooCommerce
WOOCOMMERCE_SERVICE: str = "WooCommerce"
WOOCOMMERCE_API_PREFIX: str = "/wp-json/wc/v3"
BARCODE_META_KEY: str = "_barcode"

DEFAULT_WEIGHT_UNIT: str = "kg"
