"""
Rate acquisition: fetch a rate, then persist it, as one unit of work.
"""

import logging
from datetime import datetime, timezone

from fxworker.constants import SPAN_ACQUIRE_RATE, QueueOperation
from fxworker.exceptions import RateFetchError, StoreError
from fxworker.observability.tracing import get_tracer
from fxworker.types.contracts import RateProvider, RateStoreClient
from fxworker.types.job import Job, RateResult
from fxworker.worker.retry import QueueOperationRetryPolicy

logger = logging.getLogger(__name__)


class RateAcquisitionPipeline:
    """
    Fetches and saves the rate for a job.

    Provider failures and store failures are reported the same way, as a
    ``RateFetchError``. A rate that was fetched but could not be saved is
    discarded.
    """

    def __init__(
        self,
        provider: RateProvider,
        store: RateStoreClient,
        store_retry: QueueOperationRetryPolicy | None = None,
    ):
        self._provider = provider
        self._store = store
        self._store_retry = store_retry or QueueOperationRetryPolicy(retry_on=(StoreError,))

    async def acquire(self, job: Job) -> RateResult:
        """
        Get the job's exchange rate and save it.

        Args:
            job: The job whose currency pair is converted.

        Returns:
            RateResult with the two-decimal rate and the saved record reference.

        Raises:
            RateFetchError: If fetching fails, or saving fails on every attempt.
        """
        with get_tracer().start_as_current_span(SPAN_ACQUIRE_RATE) as span:
            span.set_attribute("task_id", job.task_id)
            span.set_attribute("from", job.from_currency)
            span.set_attribute("to", job.to_currency)

            rate = await self._provider.query(job.from_currency, job.to_currency)
            fetched_at = datetime.now(timezone.utc).replace(tzinfo=None)

            outcome = await self._store_retry.execute(
                QueueOperation.SAVE,
                lambda: self._store.save(
                    job.task_id,
                    job.from_currency,
                    job.to_currency,
                    rate,
                    fetched_at,
                ),
            )
            if not outcome.ok:
                raise RateFetchError(
                    f"Save exchange rate error after {outcome.attempts} attempts: {outcome.error}"
                ) from outcome.error

        logger.debug(
            "Rate acquired",
            extra={"task_id": job.task_id, "rate": rate, "record": outcome.value},
        )

        return RateResult(
            from_currency=job.from_currency,
            to_currency=job.to_currency,
            rate=rate,
            fetched_at=fetched_at,
            record_reference=outcome.value,
        )
