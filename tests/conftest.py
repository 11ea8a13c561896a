"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from fxworker.db import RateStore, TubeQueue
from fxworker.exceptions import RateFetchError, StoreError
from fxworker.observability.metrics import MetricsCollector
from fxworker.worker.controller import JobLifecycleController
from fxworker.worker.pipeline import RateAcquisitionPipeline
from fxworker.worker.retry import QueueOperationRetryPolicy

from tests.fakes import TEST_TUBE, FakeProvider, FakeQueue, FakeStore



@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on an isolated registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def retry_policy(metrics: MetricsCollector) -> QueueOperationRetryPolicy:
    return QueueOperationRetryPolicy(metrics=metrics)


@pytest.fixture
def pipeline(
    fake_provider: FakeProvider,
    fake_store: FakeStore,
    metrics: MetricsCollector,
) -> RateAcquisitionPipeline:
    return RateAcquisitionPipeline(
        fake_provider,
        fake_store,
        store_retry=QueueOperationRetryPolicy(retry_on=(StoreError,), metrics=metrics),
    )


@pytest.fixture
def controller(
    fake_queue: FakeQueue,
    pipeline: RateAcquisitionPipeline,
    retry_policy: QueueOperationRetryPolicy,
    metrics: MetricsCollector,
) -> JobLifecycleController:
    return JobLifecycleController(
        1000,
        fake_queue,
        pipeline,
        retry_policy=retry_policy,
        metrics=metrics,
    )


@pytest.fixture
def queue_database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"


@pytest.fixture
def store_database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'rates.db'}"


@pytest_asyncio.fixture
async def tube_queue(queue_database_url: str) -> AsyncGenerator[TubeQueue]:
    """Initialized queue client on a fresh SQLite database."""
    queue = TubeQueue(queue_database_url, TEST_TUBE, poll_interval=0.01, owner="test-worker")
    await queue.init()
    await queue.database.create_schema()

    yield queue

    await queue.close()


@pytest_asyncio.fixture
async def rate_store(store_database_url: str) -> AsyncGenerator[RateStore]:
    """Initialized rate store on a fresh SQLite database."""
    store = RateStore(store_database_url)
    await store.init()
    await store.database.create_schema()

    yield store

    await store.close()


@pytest.fixture
def failing_provider() -> FakeProvider:
    return FakeProvider(error=RateFetchError("Get exchange rate error"))
