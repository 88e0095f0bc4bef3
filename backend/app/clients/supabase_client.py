import logging

from supabase import create_client, Client

from app.core.config import Settings

logger = logging.getLogger("supabase_client")


class SupabaseClient:
    """Supabase client wrapper using the official supabase-py SDK."""

    def __init__(self, settings: Settings) -> None:
        self._url = settings.supabase_url
        self._key = settings.supabase_key
        self._client: Client | None = None

        if not self._url or not self._key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for Supabase access"
            )

    def get_client(self) -> Client:
        """Get or create the Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
            logger.info("supabase client initialized url=%s", self._url)
        return self._client

    @property
    def client(self) -> Client:
        """Property accessor for the Supabase client."""
        return self.get_client()
