"""
Type definitions for the rate worker.
Contains job, queue and collaborator contract types.
"""

from fxworker.types.contracts import (
    QueueClient,
    RateProvider,
    RateStoreClient,
)
from fxworker.types.job import (
    Job,
    JobPayload,
    RateResult,
)
from fxworker.types.queue import (
    OutcomeKind,
    QueueOperationOutcome,
    ReservedJob,
)

__all__ = [
    # Job types
    "Job",
    "JobPayload",
    "RateResult",
    # Queue types
    "ReservedJob",
    "OutcomeKind",
    "QueueOperationOutcome",
    # Contracts
    "QueueClient",
    "RateProvider",
    "RateStoreClient",
]
