"""
Queue-related type definitions.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


@dataclass(frozen=True)
class ReservedJob:
    """A queue entry handed out by ``reserve``."""

    handle: int
    payload: str


class OutcomeKind(StrEnum):
    """Tag of a queue operation outcome."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class QueueOperationOutcome:
    """
    Tagged result of a retried queue mutation.

    A single failed attempt is a ``TRANSIENT_FAILURE``; the retry policy only
    ever returns ``SUCCESS`` or ``PERMANENT_FAILURE``.
    """

    kind: OutcomeKind
    operation: str
    attempts: int
    value: Any = None
    error: BaseException | None = None

    @classmethod
    def success(cls, operation: str, attempts: int, value: Any = None) -> "QueueOperationOutcome":
        return cls(OutcomeKind.SUCCESS, operation, attempts, value=value)

    @classmethod
    def transient(cls, operation: str, attempts: int, error: BaseException) -> "QueueOperationOutcome":
        return cls(OutcomeKind.TRANSIENT_FAILURE, operation, attempts, error=error)

    @classmethod
    def permanent(cls, operation: str, attempts: int, error: BaseException | None) -> "QueueOperationOutcome":
        return cls(OutcomeKind.PERMANENT_FAILURE, operation, attempts, error=error)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS
