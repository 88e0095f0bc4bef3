"""
Sync Worker — single cooperative loop that claims and runs queued jobs.

Loop:
    claim oldest queued job -> none: sleep poll interval
    connection missing / not active -> fail job (no dispatch)
    fetch source catalog -> delta SKU filter -> mapping rules -> reconcile
    success -> job succeeded, connection.last_synced_at touched
    failure -> attempts+1, re-queued or dead; short delay before continuing

The connection is read once at claim time and used as an immutable snapshot
for the whole run. A pause issued mid-run cancels only queued jobs; the
running job is not re-checked and finishes normally.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.clients.destination_base import DestinationClient
from app.clients.shopify_client import ShopifyDestinationClient
from app.clients.woocommerce_client import WooCommerceDestinationClient
from app.core.config import Settings, get_settings
from app.core.constants.sync import (
    CONNECTION_NOT_FOUND_ERROR,
    ITEM_FAILED,
    ITEM_QUEUED,
    ITEM_RUNNING,
    ITEM_SUCCEEDED,
    JOB_DEAD,
    LEVEL_ERROR,
    LEVEL_INFO,
    ORPHANED_JOB_ERROR,
    PLATFORM_SHOPIFY,
)
from app.core.exceptions import ConnectionNotActiveError, ConnectionNotFoundError
from app.db.audit_store import AuditStore
from app.db.connection_store import ConnectionStore
from app.db.job_item_store import JobItemStore
from app.db.job_store import JobStore
from app.schemas.connections import Connection
from app.schemas.jobs import Job
from app.services.catalog_reconciler import CatalogReconciler
from app.services.collection_service import CollectionCache, CollectionSyncService
from app.services.connection_service import ConnectionService
from app.services.mapping_rules import apply_rules
from app.services.reconciler_base import BaseReconciler, ReconcileReport
from app.services.source_catalog import SourceCatalog, filter_by_skus
from app.services.woocommerce_reconciler import WooCommerceReconciler
from app.utils.rate_limiter import RateLimiterRegistry
from app.utils.retry import RetryOptions

logger = logging.getLogger("sync_worker")


class SyncWorker:
    def __init__(
        self,
        job_store: JobStore,
        job_item_store: JobItemStore,
        connection_store: ConnectionStore,
        audit_store: AuditStore,
        connection_service: ConnectionService,
        source: SourceCatalog,
        dispatcher: RateLimiterRegistry,
        collection_cache: CollectionCache,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._jobs = job_store
        self._items = job_item_store
        self._connections = connection_store
        self._audit = audit_store
        self._connection_service = connection_service
        self._source = source
        self._dispatcher = dispatcher
        self._collection_cache = collection_cache
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._http_client = http_client
        self._retry_options = RetryOptions.from_settings(self._settings)
        self._running = False

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def stop(self) -> None:
        self._running = False

    async def run_forever(self) -> None:
        self._running = True
        try:
            await self.reclaim_orphaned_jobs()
        except Exception as exc:
            logger.exception(f"[WORKER] Orphaned job reclaim failed: {exc}")
        logger.info(
            f"[WORKER] Started (poll={self._settings.worker_poll_interval}s, "
            f"max_attempts={self._settings.job_max_attempts})"
        )
        while self._running:
            try:
                job = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception(f"[WORKER] Loop error: {exc}")
                job = None
            if job is None and self._running:
                await self._sleep(self._settings.worker_poll_interval)
        logger.info("[WORKER] Stopped")

    async def reclaim_orphaned_jobs(self) -> int:
        """
        Fail jobs left in `running` by a worker that stopped mid-run.

        Only one worker loop runs per deployment, so any `running` job seen at
        startup has no owner. Each one counts as a failed attempt: it is
        re-queued, or dead-lettered once it reaches max attempts.
        """
        orphans = self._jobs.list_running()
        for job in orphans:
            logger.warning(f"[WORKER] Reclaiming orphaned job {job.id} (attempts so far: {job.attempts})")
            await self._fail(job, RuntimeError(ORPHANED_JOB_ERROR))
        return len(orphans)

    async def run_once(self) -> Optional[Job]:
        """Claim and process one job. Returns the job, or None when the queue is empty."""
        job = self._jobs.claim_next()
        if job is None:
            return None
        await self.process_job(job)
        return job

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def process_job(self, job: Job) -> bool:
        """Run one claimed job to success or failure. Returns True on success."""
        logger.info(f"[WORKER] Processing job {job.id} ({job.job_type}) for connection {job.connection_id}")
        try:
            connection = self._connections.get(job.connection_id)
            if connection is None:
                raise ConnectionNotFoundError(job.connection_id)
            if not connection.is_active:
                raise ConnectionNotActiveError(connection.id, connection.status)

            report = await self._run(job, connection)
        except Exception as exc:
            await self._fail(job, exc)
            return False

        try:
            self._jobs.succeed(job.id)
        except Exception as exc:
            logger.error(f"[WORKER] Could not record success for job {job.id}: {exc}")
            await self._fail(job, exc)
            return False
        logger.info(f"[WORKER] Job {job.id} succeeded: {report.summary()}")

        try:
            self._connections.touch_last_synced(connection.id)
        except Exception as exc:
            logger.warning(f"[WORKER] Could not update last_synced_at for connection {connection.id}: {exc}")
        return True

    async def _run(self, job: Job, connection: Connection) -> ReconcileReport:
        skus = None
        if job.is_delta:
            skus = self._items.list_skus(job.id)
            self._items.mark_all(job.id, ITEM_RUNNING)

        items = filter_by_skus(await self._source.fetch_catalog(), skus)
        kept, skipped = apply_rules(items, connection.rules)
        logger.info(
            f"[WORKER] Job {job.id}: {len(items)} source items, {len(kept)} kept, {len(skipped)} skipped by rules"
        )

        reconciler = self.build_reconciler(connection, job.id)
        report = await reconciler.reconcile(kept)

        if job.is_delta:
            for sku, error in report.errors.items():
                self._items.mark_state(job.id, [sku], ITEM_FAILED, error)
            ok = [sku for sku in skus if sku not in report.errors]
            self._items.mark_state(job.id, ok, ITEM_SUCCEEDED)
        return report

    async def _fail(self, job: Job, exc: Exception) -> None:
        error = CONNECTION_NOT_FOUND_ERROR if isinstance(exc, ConnectionNotFoundError) else str(exc)
        logger.error(f"[WORKER] Job {job.id} failed: {error}")

        updated = self._jobs.fail(job.id, error, self._settings.job_max_attempts)
        self._audit.log(
            LEVEL_ERROR,
            f"Job failed: {error}",
            connection_id=job.connection_id,
            job_id=job.id,
            meta={"attempts": updated.attempts if updated else job.attempts + 1},
        )
        if job.is_delta:
            dead = updated is not None and updated.state == JOB_DEAD
            self._items.mark_all(job.id, ITEM_FAILED if dead else ITEM_QUEUED)
        if updated is not None and updated.state == JOB_DEAD:
            self._audit.log(
                LEVEL_INFO,
                "Job moved to dead-letter queue",
                connection_id=job.connection_id,
                job_id=job.id,
            )
        await self._sleep(self._settings.worker_failure_delay)

    def build_client(self, connection: Connection) -> DestinationClient:
        """Decrypt credentials and build the platform's destination client."""
        credentials: Dict[str, str] = self._connection_service.resolve_credentials(connection)

        if connection.platform == PLATFORM_SHOPIFY:
            return ShopifyDestinationClient(
                shop_domain=connection.dest_shop_domain,
                access_token=credentials["access_token"],
                dispatcher=self._dispatcher,
                api_version=self._settings.destination_api_version,
                retry_options=self._retry_options,
                timeout=self._settings.destination_http_timeout,
                http_client=self._http_client,
            )
        return WooCommerceDestinationClient(
            base_url=connection.base_url,
            consumer_key=credentials["consumer_key"],
            consumer_secret=credentials["consumer_secret"],
            dispatcher=self._dispatcher,
            retry_options=self._retry_options,
            timeout=self._settings.destination_http_timeout,
            http_client=self._http_client,
        )

    def build_reconciler(self, connection: Connection, job_id: str) -> BaseReconciler:
        client = self.build_client(connection)
        if connection.platform == PLATFORM_SHOPIFY:
            return CatalogReconciler(
                client=client,
                connection=connection,
                audit=self._audit,
                collections=CollectionSyncService(client, self._collection_cache),
                job_id=job_id,
                settings=self._settings,
                sleep=self._sleep,
            )

        return WooCommerceReconciler(
            client=client,
            connection=connection,
            audit=self._audit,
            job_id=job_id,
            settings=self._settings,
            sleep=self._sleep,
        )
