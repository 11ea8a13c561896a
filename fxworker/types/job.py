"""
Job-related type definitions for internal use.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fxworker.constants import (
    FAIL_DELAY_SECONDS,
    FAIL_THRESHOLD,
    SUCCESS_DELAY_SECONDS,
    SUCCESS_THRESHOLD,
)
from fxworker.exceptions import PayloadError
from fxworker.types.queue import ReservedJob


class JobPayload(BaseModel):
    """
    Job payload wire format.

    ``success`` and ``fail`` are absent on jobs inserted by the producer and
    default to zero.
    """

    model_config = ConfigDict(populate_by_name=True)

    task_id: int
    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")
    success: int = Field(default=0, ge=0)
    fail: int = Field(default=0, ge=0)

    def to_json(self) -> str:
        """Serialize using the wire field names."""
        return self.model_dump_json(by_alias=True)


@dataclass
class Job:
    """
    A conversion job as seen by one lifecycle cycle.

    ``handle`` identifies the current queue entry only; it changes on every
    requeue. ``task_id`` is the stable identity of the logical job.
    """

    handle: int
    task_id: int
    from_currency: str
    to_currency: str
    success_count: int = 0
    fail_count: int = 0
    pending_delay_seconds: int = 0
    result_reference: Any | None = None

    @classmethod
    def from_reserved(cls, reserved: ReservedJob) -> "Job":
        """
        Decode a reserved queue entry into a Job.

        Raises:
            PayloadError: If the payload is not valid JSON or misses fields.
        """
        try:
            payload = JobPayload.model_validate(json.loads(reserved.payload))
        except (ValueError, TypeError, ValidationError) as e:
            raise PayloadError(f"Undecodable payload for entry {reserved.handle}: {e}") from e

        return cls(
            handle=reserved.handle,
            task_id=payload.task_id,
            from_currency=payload.from_currency,
            to_currency=payload.to_currency,
            success_count=payload.success,
            fail_count=payload.fail,
        )

    @property
    def is_finished(self) -> bool:
        """Check if the job has collected enough successful fetches."""
        return self.success_count >= SUCCESS_THRESHOLD

    @property
    def is_exhausted(self) -> bool:
        """Check if the job has failed too often to continue."""
        return self.fail_count >= FAIL_THRESHOLD

    def record_success(self, result_reference: Any | None = None) -> None:
        """Count a successful fetch and schedule the next one."""
        self.success_count += 1
        self.pending_delay_seconds = SUCCESS_DELAY_SECONDS
        self.result_reference = result_reference
        self._skip_delay_at_threshold()

    def record_failure(self) -> None:
        """Count a failed fetch and schedule a quick retry."""
        self.fail_count += 1
        self.pending_delay_seconds = FAIL_DELAY_SECONDS
        self._skip_delay_at_threshold()

    def _skip_delay_at_threshold(self) -> None:
        # the next reservation only finishes or buries the job
        if self.is_finished or self.is_exhausted:
            self.pending_delay_seconds = 0

    def to_payload(self) -> JobPayload:
        """Build the payload carried by the next queue entry."""
        return JobPayload(
            task_id=self.task_id,
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            success=self.success_count,
            fail=self.fail_count,
        )


class RateResult(BaseModel):
    """
    A fetched and persisted exchange rate.
    Returned by the rate acquisition pipeline on success.
    """

    from_currency: str
    to_currency: str
    rate: str
    fetched_at: datetime
    record_reference: Any | None = None
