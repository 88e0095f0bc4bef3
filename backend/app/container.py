"""
Lazy DI container — process-wide access to clients, stores, and services.

The composition root: components take their collaborators as constructor
arguments and this module wires one instance of each per process. Tests
construct components directly instead.
Import individual getters to avoid circular imports.
Version: 1.0.0
"""

import logging
from functools import lru_cache

from app.core.config import settings
from app.clients.supabase_client import SupabaseClient
from app.clients.shopify_source import ShopifySourceCatalog
from app.db.audit_store import AuditStore
from app.db.connection_store import ConnectionStore
from app.db.job_item_store import JobItemStore
from app.db.job_store import JobStore
from app.services.collection_service import CollectionCache
from app.services.connection_service import ConnectionService
from app.services.health_service import HealthService
from app.services.job_queue_service import JobQueueService
from app.services.source_catalog import CompositeSourceCatalog
from app.services.sync_preview import SyncPreviewService
from app.services.sync_worker import SyncWorker
from app.utils.rate_limiter import RateLimiterRegistry
from app.utils.retry import RetryOptions
from app.utils.secrets import Secrets

logger = logging.getLogger(__name__)


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings).client


@lru_cache(maxsize=1)
def get_secrets():
    return Secrets(settings.encryption_key)


@lru_cache(maxsize=1)
def get_rate_limiter_registry():
    return RateLimiterRegistry(settings)


@lru_cache(maxsize=1)
def get_collection_cache():
    return CollectionCache()


@lru_cache(maxsize=1)
def get_source_catalog():
    sources = []
    if settings.source_shop_domain and settings.source_access_token:
        sources.append(ShopifySourceCatalog(
            shop_domain=settings.source_shop_domain,
            access_token=settings.source_access_token,
            api_version=settings.destination_api_version,
            retry_options=RetryOptions.from_settings(settings),
            timeout=settings.destination_http_timeout,
        ))
    else:
        logger.warning("SOURCE_SHOP_DOMAIN/SOURCE_ACCESS_TOKEN not set; source catalog is empty")
    return CompositeSourceCatalog(sources, primary_source=settings.primary_source)


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_connection_store():
    return ConnectionStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_job_store():
    return JobStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_job_item_store():
    return JobItemStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_audit_store():
    return AuditStore(get_supabase_client())


# -- Services --------------------------------------------------------------

@lru_cache(maxsize=1)
def get_connection_service():
    return ConnectionService(get_connection_store(), get_job_store(), get_secrets())


@lru_cache(maxsize=1)
def get_job_queue_service():
    return JobQueueService(get_job_store(), get_job_item_store(), get_connection_store())


@lru_cache(maxsize=1)
def get_health_service():
    return HealthService(
        get_connection_store(),
        get_job_store(),
        get_audit_store(),
        get_rate_limiter_registry(),
        settings,
    )


@lru_cache(maxsize=1)
def get_sync_worker():
    return SyncWorker(
        job_store=get_job_store(),
        job_item_store=get_job_item_store(),
        connection_store=get_connection_store(),
        audit_store=get_audit_store(),
        connection_service=get_connection_service(),
        source=get_source_catalog(),
        dispatcher=get_rate_limiter_registry(),
        collection_cache=get_collection_cache(),
        settings=settings,
    )


@lru_cache(maxsize=1)
def get_sync_preview_service():
    return SyncPreviewService(
        connection_store=get_connection_store(),
        source=get_source_catalog(),
        client_factory=get_sync_worker().build_client,
        settings=settings,
    )
