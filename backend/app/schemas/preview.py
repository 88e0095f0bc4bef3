"""
Preview schemas — dry-run outcome of a connection sync.

Version: 1.0.0
"""
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PreviewItem(BaseModel):
    sku: str
    title: str
    action: Literal["create", "update", "skip"]
    reason: Optional[str] = None
    # Post-rules values; None for skipped items
    price: Optional[Decimal] = None
    stock: Optional[int] = None


class SyncPreview(BaseModel):
    """Counts cover every source item; `preview_items` is capped by the request limit."""
    connection_id: str
    total_items: int = 0
    items_to_sync: int = 0
    items_to_skip: int = 0
    items_to_create: int = 0
    items_to_update: int = 0
    preview_items: List[PreviewItem] = Field(default_factory=list)
    by_action: Dict[str, int] = Field(default_factory=dict)
    by_reason: Dict[str, int] = Field(default_factory=dict)
