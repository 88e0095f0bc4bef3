import os
from typing import List, Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # Supabase
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Celery (scheduled sync trigger only)
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    # Comma-separated UTC hours at which every active connection gets a full sync
    sync_hours: str = os.getenv("SYNC_HOURS", "1,9,17")

    # Worker loop
    worker_poll_interval: float = float(os.getenv("WORKER_POLL_INTERVAL", "5"))
    worker_failure_delay: float = float(os.getenv("WORKER_FAILURE_DELAY", "1"))
    job_max_attempts: int = int(os.getenv("JOB_MAX_ATTEMPTS", "5"))
    auto_start_worker: bool = os.getenv("AUTO_START_WORKER", "false").lower() == "true"

    # Retry / backoff
    retry_max_retries: int = int(os.getenv("RETRY_MAX_RETRIES", "3"))
    retry_base_delay: float = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
    retry_max_delay: float = float(os.getenv("RETRY_MAX_DELAY", "30.0"))
    retry_backoff_multiplier: float = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "2"))
    retry_jitter_ratio: float = float(os.getenv("RETRY_JITTER_RATIO", "0.3"))

    # Rate limits (tokens, tokens/second) per destination domain
    general_bucket_capacity: int = int(os.getenv("GENERAL_BUCKET_CAPACITY", "40"))
    general_bucket_refill_rate: float = float(os.getenv("GENERAL_BUCKET_REFILL_RATE", "40"))
    inventory_bucket_capacity: int = int(os.getenv("INVENTORY_BUCKET_CAPACITY", "2"))
    inventory_bucket_refill_rate: float = float(os.getenv("INVENTORY_BUCKET_REFILL_RATE", "2"))
    dispatch_queue_max_depth: int = int(os.getenv("DISPATCH_QUEUE_MAX_DEPTH", "1000"))

    # Destinations
    destination_api_version: str = os.getenv("DESTINATION_API_VERSION", "2024-10")
    destination_http_timeout: float = float(os.getenv("DESTINATION_HTTP_TIMEOUT", "30"))

    # Politeness delays between sequential destination calls (seconds)
    lookup_delay: float = float(os.getenv("LOOKUP_DELAY", "0.1"))
    variant_add_delay: float = float(os.getenv("VARIANT_ADD_DELAY", "0.25"))
    product_create_delay: float = float(os.getenv("PRODUCT_CREATE_DELAY", "0.5"))
    update_delay: float = float(os.getenv("UPDATE_DELAY", "0.2"))

    # Source store (catalog being pushed out)
    source_shop_domain: Optional[str] = os.getenv("SOURCE_SHOP_DOMAIN")
    source_access_token: Optional[str] = os.getenv("SOURCE_ACCESS_TOKEN")

    # Reconciliation policy
    skip_out_of_stock: bool = os.getenv("SKIP_OUT_OF_STOCK", "true").lower() == "true"
    primary_source: str = os.getenv("PRIMARY_SOURCE", "shopify")

    # Credentials
    encryption_key: Optional[str] = os.getenv("ENCRYPTION_KEY")

    # Health
    health_queue_degraded_threshold: int = int(os.getenv("HEALTH_QUEUE_DEGRADED_THRESHOLD", "1000"))

    @property
    def sync_hours_list(self) -> List[int]:
        """Parse SYNC_HOURS into a sorted list of UTC hours."""
        hours = {int(h) for h in self.sync_hours.split(",") if h.strip()}
        return sorted(h for h in hours if 0 <= h <= 23)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
