"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class EntryState(StrEnum):
    """
    Queue entry states.

    State transitions:
    - READY -> RESERVED (reserve)
    - RESERVED -> deleted (delete)
    - RESERVED -> BURIED (bury)
    - RESERVED -> READY (time-to-run expired)
    """

    READY = "ready"
    RESERVED = "reserved"
    BURIED = "buried"


class CycleOutcome(StrEnum):
    """What a single lifecycle cycle did with the reserved job."""

    FINISHED = "finished"
    BURIED = "buried"
    REQUEUED = "requeued"


class QueueOperation(StrEnum):
    """Queue mutations covered by the bounded retry policy."""

    DELETE = "delete"
    BURY = "bury"
    PUT = "put"
    SAVE = "save"


# Lifecycle thresholds
SUCCESS_THRESHOLD = 10
FAIL_THRESHOLD = 3

# Requeue delays (seconds)
SUCCESS_DELAY_SECONDS = 60
FAIL_DELAY_SECONDS = 3

# Immediate retries after the first failed attempt of a queue mutation
MAX_TRIES = 5

# Queue put/bury parameters (lower priority value is served first)
PRODUCER_PRIORITY = 1
REQUEUE_PRIORITY = 10
BURY_PRIORITY = 1
# Must outlast a whole work cycle: one bounded provider call plus retried saves
DEFAULT_TTR_SECONDS = 120
DEFAULT_TUBE = "default"

# Postgres channel notified on every immediately visible put; payload is the tube
QUEUE_NOTIFY_CHANNEL = "fxworker_queue_put"

# Rate formatting
RATE_DECIMAL_PLACES = 2

# Metrics names
METRIC_JOBS_PROCESSED = "fx_jobs_processed_total"
METRIC_RATE_FETCHES = "fx_rate_fetches_total"
METRIC_QUEUE_RETRIES = "fx_queue_operation_retries_total"
METRIC_QUEUE_FAILURES = "fx_queue_operation_failures_total"
METRIC_CYCLE_DURATION = "fx_cycle_duration_seconds"

# Trace span names
SPAN_PROCESS_JOB = "process_job"
SPAN_ACQUIRE_RATE = "acquire_rate"
