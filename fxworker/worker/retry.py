"""
Bounded retry for queue mutations and rate persistence.

A failed attempt is retried immediately, with no delay, up to ``max_tries``
more times. The attempt counter lives in the call, so failures of one
operation never count against another.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fxworker.constants import MAX_TRIES
from fxworker.exceptions import QueueError, QueueOperationFailed
from fxworker.observability.metrics import MetricsCollector, get_metrics
from fxworker.types.queue import QueueOperationOutcome

logger = logging.getLogger(__name__)


class QueueOperationRetryPolicy:
    """
    Retry combinator returning a tagged ``QueueOperationOutcome``.

    Only exceptions listed in ``retry_on`` count as transient failures; any
    other exception propagates from ``execute`` unchanged.
    """

    def __init__(
        self,
        max_tries: int = MAX_TRIES,
        retry_on: tuple[type[BaseException], ...] = (QueueError,),
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the policy.

        Args:
            max_tries: Retries allowed after the first failed attempt.
            retry_on: Exception types treated as transient.
            metrics: Collector for retry counters. Defaults to the process one.
        """
        if max_tries < 0:
            raise ValueError("max_tries must be >= 0")

        self.max_tries = max_tries
        self.retry_on = retry_on
        self._metrics = metrics or get_metrics()

    async def execute(
        self,
        operation: str,
        func: Callable[[], Awaitable[Any]],
    ) -> QueueOperationOutcome:
        """
        Run ``func`` until it succeeds or the retry budget is spent.

        Args:
            operation: Name used in logs and metrics.
            func: Zero-argument coroutine factory making one attempt.

        Returns:
            A SUCCESS outcome carrying the function's value, or a
            PERMANENT_FAILURE outcome carrying the last error.
        """
        attempts = 0
        last: QueueOperationOutcome | None = None

        while attempts <= self.max_tries:
            attempts += 1
            try:
                value = await func()
            except self.retry_on as e:
                last = QueueOperationOutcome.transient(operation, attempts, e)
                self._metrics.record_queue_retry(operation)
                logger.warning(
                    f"{operation} attempt failed",
                    extra={"operation": operation, "attempt": attempts, "error": str(e)},
                )
                continue

            if attempts > 1:
                logger.info(
                    f"{operation} succeeded after retry",
                    extra={"operation": operation, "attempt": attempts},
                )
            return QueueOperationOutcome.success(operation, attempts, value)

        self._metrics.record_queue_failure(operation)
        logger.error(
            f"{operation} failed, retries exhausted",
            extra={"operation": operation, "attempts": attempts},
        )
        return QueueOperationOutcome.permanent(
            operation,
            attempts,
            last.error if last is not None else None,
        )

    async def run(self, operation: str, func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Like ``execute``, but raise on permanent failure.

        Returns:
            The value returned by the successful attempt.

        Raises:
            QueueOperationFailed: If every attempt failed.
        """
        outcome = await self.execute(operation, func)
        if not outcome.ok:
            raise QueueOperationFailed(operation, outcome.attempts, outcome.error)
        return outcome.value
