"""
Worker processes for fetching exchange rates.

``run`` starts the pool; each child process runs ``run_worker``, which
connects its own collaborators and loops until a fatal error.
"""

import asyncio
import logging
import signal
import sys

from fxworker.config import Settings, get_settings
from fxworker.converter import XeRateProvider
from fxworker.db import RateStore, TubeQueue
from fxworker.observability.logging import bind_worker, setup_logging
from fxworker.observability.metrics import setup_metrics
from fxworker.observability.tracing import instrument_sqlalchemy, setup_tracing
from fxworker.worker.controller import JobLifecycleController
from fxworker.worker.pipeline import RateAcquisitionPipeline
from fxworker.worker.pool import WorkerPool

logger = logging.getLogger(__name__)


async def run_worker_async(worker_id: int, settings: Settings) -> None:
    """
    Connect one worker's collaborators and run its controller.

    Connection failures at startup are raised immediately. Whatever ends the
    loop, the worker's connections are closed before returning.
    """
    queue = TubeQueue(
        settings.queue_database_url,
        settings.queue_tube,
        poll_interval=settings.queue_poll_interval_seconds,
        owner=f"worker-{worker_id}",
    )
    store = RateStore(settings.store_database_url)
    provider = XeRateProvider(
        settings.converter_host,
        settings.converter_path,
        timeout=settings.converter_timeout_seconds,
    )

    # SIGTERM from the pool cancels the loop so the finally block still runs
    asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, asyncio.current_task().cancel)

    try:
        logger.info("Initializing job queue and database connection")
        await queue.init()
        await store.init()
        instrument_sqlalchemy(queue.database.engine, store.database.engine)
        logger.info("Ready", extra={"tube": settings.queue_tube})

        controller = JobLifecycleController(
            worker_id,
            queue,
            RateAcquisitionPipeline(provider, store),
        )
        await controller.run()
    finally:
        await provider.close()
        await store.close()
        await queue.close()
        logger.info("Destroyed")


def run_worker(worker_id: int, index: int = 0) -> None:
    """
    Worker process entry point.

    Exits the process with status 1 on any fatal error.
    """
    setup_logging()
    settings = get_settings()
    bind_worker(worker_id)
    setup_tracing()
    setup_metrics(settings.prometheus_port + index if settings.prometheus_port else 0)

    try:
        asyncio.run(run_worker_async(worker_id, settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Worker stopped")
    except Exception:
        logger.exception("Worker terminated by fatal error")
        sys.exit(1)


def run() -> None:
    """Run the worker pool."""
    setup_logging()
    settings = get_settings()

    pool = WorkerPool(settings.worker_ids, target=run_worker)
    logger.info(
        "Starting worker pool",
        extra={"workers": settings.worker_count, "tube": settings.queue_tube},
    )
    sys.exit(pool.run())


if __name__ == "__main__":
    run()
