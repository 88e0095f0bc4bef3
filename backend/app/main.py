import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.routes.health import router as health_router

logger = logging.getLogger(__name__)

_worker_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the sync worker in-process when AUTO_START_WORKER=true."""
    global _worker_task
    logger.info("=== Catalog Sync Ready ===")

    if settings.auto_start_worker:
        from app.container import get_sync_worker
        _worker_task = asyncio.create_task(get_sync_worker().run_forever())
        logger.info("Sync worker started in-process")
    else:
        logger.info("AUTO_START_WORKER=false, run `python -m app.worker` separately")

    yield

    logger.info("=== Catalog Sync Shutting Down ===")
    if _worker_task is not None:
        from app.container import get_rate_limiter_registry, get_sync_worker
        get_sync_worker().stop()
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass
        await get_rate_limiter_registry().aclose()
        _worker_task = None
    logger.info("Shutdown complete")


app = FastAPI(title="Catalog Sync Backend", lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
