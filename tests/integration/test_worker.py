"""
Integration tests for worker cycles against real queue and store tables.
"""

import json

import pytest
from sqlalchemy import select

from fxworker.constants import CycleOutcome, EntryState
from fxworker.db import RateStore, TubeQueue
from fxworker.db.models import QueueEntry
from fxworker.exceptions import StoreError
from fxworker.observability.metrics import MetricsCollector
from fxworker.worker.controller import JobLifecycleController
from fxworker.worker.pipeline import RateAcquisitionPipeline
from fxworker.worker.retry import QueueOperationRetryPolicy

from tests.fakes import FakeProvider, drop_connections


def build_controller(
    queue: TubeQueue,
    store: RateStore,
    provider: FakeProvider,
    metrics: MetricsCollector,
) -> JobLifecycleController:
    pipeline = RateAcquisitionPipeline(
        provider,
        store,
        store_retry=QueueOperationRetryPolicy(retry_on=(StoreError,), metrics=metrics),
    )
    return JobLifecycleController(
        "test-worker",
        queue,
        pipeline,
        retry_policy=QueueOperationRetryPolicy(metrics=metrics),
        metrics=metrics,
    )


async def seed(queue: TubeQueue, success: int = 0, fail: int = 0) -> int:
    payload = {"task_id": 42, "from": "HKD", "to": "USD", "success": success, "fail": fail}
    return await queue.put(1, 0, 10, json.dumps(payload))


async def ready_payloads(queue: TubeQueue) -> list[dict]:
    async with queue.database.session() as session:
        result = await session.execute(
            select(QueueEntry.payload).where(QueueEntry.state == EntryState.READY)
        )
        return [json.loads(payload) for payload in result.scalars()]


class TestWorkerIntegration:
    """End-to-end lifecycle cycles."""

    async def test_last_success_then_finish(
        self,
        tube_queue: TubeQueue,
        rate_store: RateStore,
        metrics: MetricsCollector,
    ):
        """Test the tenth successful fetch is requeued without delay and then finished."""
        provider = FakeProvider(rate="0.13")
        controller = build_controller(tube_queue, rate_store, provider, metrics)
        await seed(tube_queue, success=9)

        assert await controller.run_once() == CycleOutcome.REQUEUED

        assert await ready_payloads(tube_queue) == [{
            "task_id": 42,
            "from": "HKD",
            "to": "USD",
            "success": 10,
            "fail": 0,
        }]

        assert await controller.run_once() == CycleOutcome.FINISHED
        assert await tube_queue.count() == 0

        record = await rate_store.get(1)
        assert record is not None
        assert record.task_id == 42
        assert record.rate == "0.13"
        assert provider.calls == [("HKD", "USD")]

    async def test_failures_bury_the_job(
        self,
        tube_queue: TubeQueue,
        rate_store: RateStore,
        failing_provider: FakeProvider,
        metrics: MetricsCollector,
    ):
        """Test the third failed fetch leads to a buried entry."""
        controller = build_controller(tube_queue, rate_store, failing_provider, metrics)
        await seed(tube_queue, fail=2)

        assert await controller.run_once() == CycleOutcome.REQUEUED
        assert await controller.run_once() == CycleOutcome.BURIED

        assert await tube_queue.count(EntryState.BURIED) == 1
        assert await tube_queue.count(EntryState.READY) == 0
        assert await rate_store.get(1) is None

    async def test_fresh_job_is_requeued_with_delay(
        self,
        tube_queue: TubeQueue,
        rate_store: RateStore,
        metrics: MetricsCollector,
    ):
        """Test a producer job is requeued and stays invisible during its delay."""
        controller = build_controller(tube_queue, rate_store, FakeProvider(), metrics)
        await tube_queue.put_new(7, "USD", "EUR")

        assert await controller.run_once() == CycleOutcome.REQUEUED

        assert await tube_queue.count(EntryState.READY) == 1
        assert await tube_queue._try_reserve() is None

    async def test_undecodable_payload_is_buried(
        self,
        tube_queue: TubeQueue,
        rate_store: RateStore,
        fake_provider: FakeProvider,
        metrics: MetricsCollector,
    ):
        controller = build_controller(tube_queue, rate_store, fake_provider, metrics)
        await tube_queue.put(1, 0, 10, "not json")

        assert await controller.run_once() == CycleOutcome.BURIED

        assert await tube_queue.count(EntryState.BURIED) == 1
        assert fake_provider.calls == []


    async def test_store_outage_counts_as_failed_fetch(
        self,
        tube_queue: TubeQueue,
        rate_store: RateStore,
        fake_provider: FakeProvider,
        metrics: MetricsCollector,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Test a store whose connection stays down fails the fetch without stopping the worker."""
        controller = build_controller(tube_queue, rate_store, fake_provider, metrics)
        await seed(tube_queue)
        drop_connections(monkeypatch, rate_store.database, times=6)

        assert await controller.run_once() == CycleOutcome.REQUEUED

        [payload] = await ready_payloads(tube_queue)
        assert payload["success"] == 0
        assert payload["fail"] == 1


@pytest.mark.parametrize("success, fail", [(10, 0), (10, 3)])
async def test_finished_job_is_deleted(
    tube_queue: TubeQueue,
    rate_store: RateStore,
    fake_provider: FakeProvider,
    metrics: MetricsCollector,
    success: int,
    fail: int,
):
    """Test a job at the success threshold is deleted even when also exhausted."""
    controller = build_controller(tube_queue, rate_store, fake_provider, metrics)
    await seed(tube_queue, success=success, fail=fail)

    assert await controller.run_once() == CycleOutcome.FINISHED
    assert await tube_queue.count() == 0
    assert fake_provider.calls == []
