"""
Collaborator contracts required by the lifecycle controller.
"""

from datetime import datetime
from typing import Any, Protocol

from fxworker.types.queue import ReservedJob


class QueueClient(Protocol):
    """Tube queue consumed and fed by a worker."""

    async def init(self) -> None: ...

    async def reserve(self) -> ReservedJob: ...

    async def put(
        self,
        priority: int,
        delay_seconds: int,
        ttr_seconds: int,
        payload: str,
    ) -> int: ...

    async def delete(self, handle: int) -> None: ...

    async def bury(self, handle: int, priority: int) -> None: ...

    async def close(self) -> None: ...


class RateProvider(Protocol):
    """Source of exchange rates."""

    async def query(self, from_currency: str, to_currency: str) -> str: ...


class RateStoreClient(Protocol):
    """Persistence for fetched rates."""

    async def init(self) -> None: ...

    async def save(
        self,
        task_id: int,
        from_currency: str,
        to_currency: str,
        rate: str,
        timestamp: datetime,
    ) -> Any: ...

    async def remove(self, record_reference: Any) -> bool: ...

    async def close(self) -> None: ...
