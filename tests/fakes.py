"""
In-memory collaborators for lifecycle tests.
"""

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import pytest

from fxworker.db.connection import Database
from fxworker.exceptions import QueueError, StoreError
from fxworker.types.queue import ReservedJob

TEST_TUBE = "fxrates-test"


class FakeQueue:
    """
    In-memory queue client.

    ``failures`` maps an operation name to the number of upcoming attempts of
    that operation that raise ``QueueError``. Every attempt, failed or not, is
    appended to ``calls``.
    """

    def __init__(self):
        self.entries: dict[int, dict[str, Any]] = {}
        self.buried: dict[int, dict[str, Any]] = {}
        self.failures: dict[str, int] = {}
        self.calls: list[str] = []
        self._next_handle = 1

    def add(self, payload: dict[str, Any] | str, priority: int = 1, delay: int = 0) -> int:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        handle = self._next_handle
        self._next_handle += 1
        self.entries[handle] = {
            "payload": body,
            "priority": priority,
            "delay": delay,
            "reserved": False,
        }
        return handle

    def payload_of(self, handle: int) -> dict[str, Any]:
        return json.loads(self.entries[handle]["payload"])

    def attempts(self, operation: str) -> int:
        return self.calls.count(operation)

    def _attempt(self, operation: str) -> None:
        self.calls.append(operation)
        if self.failures.get(operation, 0) > 0:
            self.failures[operation] -= 1
            raise QueueError(f"{operation} failed")

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def reserve(self) -> ReservedJob:
        # fakes hand out the oldest unreserved entry and ignore delays
        for handle, entry in sorted(self.entries.items()):
            if not entry["reserved"]:
                entry["reserved"] = True
                return ReservedJob(handle=handle, payload=entry["payload"])
        raise AssertionError("FakeQueue.reserve called on an empty queue")

    async def put(self, priority: int, delay_seconds: int, ttr_seconds: int, payload: str) -> int:
        self._attempt("put")
        return self.add(payload, priority=priority, delay=delay_seconds)

    async def delete(self, handle: int) -> None:
        self._attempt("delete")
        if handle not in self.entries:
            raise QueueError(f"entry {handle} not found")
        del self.entries[handle]

    async def bury(self, handle: int, priority: int) -> None:
        self._attempt("bury")
        entry = self.entries.pop(handle)
        entry["priority"] = priority
        self.buried[handle] = entry


class FakeProvider:
    """Rate provider returning a fixed rate or raising a fixed error."""

    def __init__(self, rate: str = "7.75", error: Exception | None = None):
        self.rate = rate
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def query(self, from_currency: str, to_currency: str) -> str:
        self.calls.append((from_currency, to_currency))
        if self.error is not None:
            raise self.error
        return self.rate


class FakeStore:
    """Rate store whose next ``fail_times`` saves raise ``StoreError``."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.records: dict[int, dict[str, Any]] = {}
        self.save_attempts = 0

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def save(
        self,
        task_id: int,
        from_currency: str,
        to_currency: str,
        rate: str,
        timestamp: datetime,
    ) -> int:
        self.save_attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise StoreError("insert failed")
        reference = len(self.records) + 1
        self.records[reference] = {
            "task_id": task_id,
            "from": from_currency,
            "to": to_currency,
            "rate": rate,
            "created_at": timestamp,
        }
        return reference

    async def remove(self, record_reference: int) -> bool:
        return self.records.pop(record_reference, None) is not None



def drop_connections(monkeypatch: pytest.MonkeyPatch, database: Database, times: int) -> None:
    """
    Make the next ``times`` sessions of ``database`` fail to connect.

    asyncpg raises a refused connection as a bare ``OSError`` subclass, which
    SQLAlchemy does not wrap.
    """
    open_session = database.session
    remaining = [times]

    @asynccontextmanager
    async def session() -> AsyncGenerator[Any]:
        if remaining[0] > 0:
            remaining[0] -= 1
            raise ConnectionRefusedError(111, "Connection refused")
        async with open_session() as s:
            yield s

    monkeypatch.setattr(database, "session", session)
