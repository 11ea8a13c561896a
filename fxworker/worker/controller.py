"""
Job lifecycle controller.

Each cycle reserves one job and takes exactly one of three paths:

- finish: enough successful fetches, the entry is deleted
- bury: too many failed fetches, the entry is buried
- requeue: fetch a rate, record the outcome, delete the entry and put a new
  one carrying the updated counters with a delay

The queue cannot update a payload in place, so a requeued job gets a new
handle every cycle. ``task_id`` is the only identity that survives.
"""

import logging
import time

from fxworker.constants import (
    BURY_PRIORITY,
    DEFAULT_TTR_SECONDS,
    REQUEUE_PRIORITY,
    SPAN_PROCESS_JOB,
    CycleOutcome,
    QueueOperation,
)
from fxworker.exceptions import PayloadError, RateFetchError
from fxworker.observability.logging import job_context
from fxworker.observability.metrics import MetricsCollector, get_metrics
from fxworker.observability.tracing import get_tracer
from fxworker.types.contracts import QueueClient
from fxworker.types.job import Job
from fxworker.worker.pipeline import RateAcquisitionPipeline
from fxworker.worker.retry import QueueOperationRetryPolicy

logger = logging.getLogger(__name__)


class JobLifecycleController:
    """
    Per-worker loop driving jobs through finish, bury or requeue.

    Queue mutations go through the retry policy; when one exhausts its retries
    ``QueueOperationFailed`` propagates out of ``run`` and the worker stops.
    Rate acquisition failures only count against the job.
    """

    def __init__(
        self,
        worker_id: int | str,
        queue: QueueClient,
        pipeline: RateAcquisitionPipeline,
        retry_policy: QueueOperationRetryPolicy | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the controller.

        Args:
            worker_id: Identifier used in logs and metrics.
            queue: Initialized queue client owned by this worker.
            pipeline: Rate acquisition for the work step.
            retry_policy: Retry policy for delete, bury and put.
            metrics: Metrics collector. Defaults to the process one.
        """
        self.worker_id = str(worker_id)
        self._queue = queue
        self._pipeline = pipeline
        self._retry = retry_policy or QueueOperationRetryPolicy()
        self._metrics = metrics or get_metrics()

    async def run(self) -> None:
        """Process jobs until a fatal error is raised."""
        logger.info("Listening", extra={"worker_id": self.worker_id})
        while True:
            await self.run_once()

    async def run_once(self) -> CycleOutcome:
        """
        Reserve one job and carry it through a single lifecycle cycle.

        Returns:
            What the cycle did with the job.

        Raises:
            QueueOperationFailed: If a queue mutation exhausted its retries.
        """
        reserved = await self._queue.reserve()
        start_time = time.monotonic()

        try:
            job = Job.from_reserved(reserved)
        except PayloadError as e:
            with job_context(handle=reserved.handle):
                logger.error(
                    "Burying undecodable job",
                    extra={"worker_id": self.worker_id, "error": str(e)},
                )
                await self._bury(reserved.handle)
            outcome = CycleOutcome.BURIED
        else:
            outcome = await self._process_reserved(job)

        self._metrics.record_cycle(self.worker_id, outcome, time.monotonic() - start_time)
        return outcome

    async def _process_reserved(self, job: Job) -> CycleOutcome:
        with job_context(task_id=job.task_id, handle=job.handle):
            logger.info(
                "Job reserved",
                extra={
                    "worker_id": self.worker_id,
                    "from": job.from_currency,
                    "to": job.to_currency,
                    "success": job.success_count,
                    "fail": job.fail_count,
                },
            )
            with get_tracer().start_as_current_span(SPAN_PROCESS_JOB) as span:
                span.set_attribute("worker_id", self.worker_id)
                span.set_attribute("task_id", job.task_id)

                outcome = await self.process(job)
                span.set_attribute("outcome", outcome.value)

        return outcome

    async def process(self, job: Job) -> CycleOutcome:
        """
        Decide and apply the cycle for a decoded job.

        The finish check runs first, so a job that reached both thresholds is
        finished rather than buried.
        """
        if job.is_finished:
            await self.finish_job(job)
            return CycleOutcome.FINISHED

        if job.is_exhausted:
            await self.bury_job(job)
            return CycleOutcome.BURIED

        await self.work(job)
        await self.requeue_job(job)
        return CycleOutcome.REQUEUED

    async def finish_job(self, job: Job) -> None:
        """Delete a job that collected enough successful fetches."""
        await self._retry.run(QueueOperation.DELETE, lambda: self._queue.delete(job.handle))
        logger.info(
            "Task finished",
            extra={"worker_id": self.worker_id, "task_id": job.task_id},
        )

    async def bury_job(self, job: Job) -> None:
        """Bury a job that failed too often."""
        await self._bury(job.handle)
        logger.warning(
            "Task buried",
            extra={"worker_id": self.worker_id, "task_id": job.task_id, "fail": job.fail_count},
        )

    async def work(self, job: Job) -> Job:
        """
        Fetch the job's rate and record the outcome on the job.

        Never raises for provider or store failures; those count as a failed
        fetch.
        """
        try:
            result = await self._pipeline.acquire(job)
        except RateFetchError as e:
            job.record_failure()
            self._metrics.record_rate_fetch(self.worker_id, success=False)
            logger.warning(
                "Get exchange rate fail",
                extra={
                    "worker_id": self.worker_id,
                    "task_id": job.task_id,
                    "fail": job.fail_count,
                    "error": str(e),
                },
            )
        else:
            job.record_success(result.record_reference)
            self._metrics.record_rate_fetch(self.worker_id, success=True)
            logger.info(
                "Get exchange rate success",
                extra={
                    "worker_id": self.worker_id,
                    "task_id": job.task_id,
                    "from": job.from_currency,
                    "to": job.to_currency,
                    "rate": result.rate,
                    "success": job.success_count,
                },
            )

        return job

    async def requeue_job(self, job: Job) -> int:
        """
        Replace the job's entry with one carrying its updated state.

        The old entry is deleted before the new one is put; ``job.handle`` is
        updated to the new entry.

        Returns:
            The new entry's handle.
        """
        old_handle = job.handle
        payload = job.to_payload().to_json()

        await self._retry.run(QueueOperation.DELETE, lambda: self._queue.delete(old_handle))
        job.handle = await self._retry.run(
            QueueOperation.PUT,
            lambda: self._queue.put(
                REQUEUE_PRIORITY,
                job.pending_delay_seconds,
                DEFAULT_TTR_SECONDS,
                payload,
            ),
        )

        logger.debug(
            "Job requeued",
            extra={
                "worker_id": self.worker_id,
                "task_id": job.task_id,
                "old_handle": old_handle,
                "handle": job.handle,
                "delay": job.pending_delay_seconds,
            },
        )
        return job.handle

    async def _bury(self, handle: int) -> None:
        await self._retry.run(
            QueueOperation.BURY,
            lambda: self._queue.bury(handle, BURY_PRIORITY),
        )
