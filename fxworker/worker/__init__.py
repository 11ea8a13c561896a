"""
Worker module.
Contains the lifecycle controller, rate pipeline, retry policy and pool.
"""

from fxworker.worker.controller import JobLifecycleController
from fxworker.worker.pipeline import RateAcquisitionPipeline
from fxworker.worker.pool import WorkerPool
from fxworker.worker.retry import QueueOperationRetryPolicy

__all__ = [
    "JobLifecycleController",
    "RateAcquisitionPipeline",
    "QueueOperationRetryPolicy",
    "WorkerPool",
]
