"""
Base store — shared Supabase client access for all stores.

Stores are synchronous (supabase-py sync client) and receive their client by
injection so tests can pass a mock or an in-memory table double.
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import Settings, get_settings
from app.clients.supabase_client import SupabaseClient

logger = logging.getLogger("base_store")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseStore:
    """Base class for all Supabase stores."""

    table: str = ""

    def __init__(self, client: Any = None, settings: Optional[Settings] = None) -> None:
        """
        Args:
            client: supabase-py Client (or compatible); created from settings when omitted
            settings: Application settings containing Supabase credentials
        """
        if client is None:
            client = SupabaseClient(settings or get_settings()).client
        self.client = client

    def _table(self, name: Optional[str] = None):
        return self.client.table(name or self.table)

    @staticmethod
    def _first(result) -> Optional[Dict[str, Any]]:
        return result.data[0] if result.data else None

    @staticmethod
    def _rows(result) -> List[Dict[str, Any]]:
        return result.data or []
