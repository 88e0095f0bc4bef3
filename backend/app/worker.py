"""
Worker entry point — runs the sync worker loop in the foreground.

    python -m app.worker

Version: 1.0.0
"""
import asyncio
import logging

from app.container import get_rate_limiter_registry, get_sync_worker

logger = logging.getLogger(__name__)


async def _run() -> None:
    worker = get_sync_worker()
    try:
        await worker.run_forever()
    finally:
        await get_rate_limiter_registry().aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Worker interrupted, exiting")


if __name__ == "__main__":
    main()
