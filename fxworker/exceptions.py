"""
Exception hierarchy for the rate worker.

Queue and store errors describe a single failed attempt and are the only
exceptions the bounded retry policy retries. ``QueueOperationFailed`` means the
retry budget is spent and is fatal to the owning worker.
"""


class FxWorkerError(Exception):
    """Base class for all rate worker errors."""


class QueueError(FxWorkerError):
    """A queue operation attempt failed."""


class QueueOperationFailed(QueueError):
    """A queue mutation failed on every allowed attempt."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException | None = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Queue operation '{operation}' failed after {attempts} attempts: {last_error}"
        )


class RateFetchError(FxWorkerError):
    """The rate provider could not produce a usable rate."""


class StoreError(FxWorkerError):
    """A rate store operation attempt failed."""


class PayloadError(FxWorkerError):
    """A reserved job payload could not be decoded."""
