"""
SQL-backed tube queue.

Implements the queue contract used by workers (watch/ignore/use, blocking
reserve, put with priority/delay/time-to-run, delete, bury) on top of a single
``queue_entries`` table. Reservation uses ``SELECT ... FOR UPDATE SKIP LOCKED``
so concurrent workers never receive the same entry.
"""

import asyncio
import logging
import weakref
from collections import defaultdict
from datetime import timedelta
from typing import Any

import asyncpg
from sqlalchemy import and_, delete, func, or_, select, update

from fxworker.constants import (
    DEFAULT_TTR_SECONDS,
    DEFAULT_TUBE,
    PRODUCER_PRIORITY,
    QUEUE_NOTIFY_CHANNEL,
    EntryState,
)
from fxworker.db.connection import DATABASE_ERRORS, Database
from fxworker.db.models import QueueEntry, utcnow
from fxworker.exceptions import QueueError
from fxworker.types.job import JobPayload
from fxworker.types.queue import ReservedJob

logger = logging.getLogger(__name__)

# Reservers of every client in this process, by database URL. Postgres NOTIFY
# reaches other processes; this reaches clients whose backend has no NOTIFY.
_local_waiters: defaultdict[str, weakref.WeakSet[asyncio.Event]] = defaultdict(weakref.WeakSet)


class TubeQueue:
    """
    Queue client bound to one tube.

    A fresh client watches and uses the default tube, like a new connection to
    a tube server. ``init`` switches both to the configured tube.

    ``reserve`` is woken by puts: on Postgres through ``LISTEN``/``NOTIFY`` on
    a dedicated asyncpg connection, and within the process through an event
    shared by clients of the same database. Delayed entries and expired
    reservations are found by re-checking every ``poll_interval`` seconds.
    """

    def __init__(
        self,
        database_url: str,
        tube: str,
        poll_interval: float = 0.5,
        owner: str | None = None,
    ):
        """
        Initialize the queue client.

        Args:
            database_url: SQLAlchemy async URL of the queue database.
            tube: Tube watched for reservations and used for puts.
            poll_interval: Seconds between re-checks while no put arrives.
            owner: Identifies this client's reservations; only the holder of
                a reservation may delete or bury the entry.
        """
        self.tube = tube
        self.poll_interval = poll_interval
        self.owner = owner
        self.database = Database(database_url)

        self._watching: set[str] = {DEFAULT_TUBE}
        self._using = DEFAULT_TUBE
        self._wakeup = asyncio.Event()
        self._listener: asyncpg.Connection | None = None

    @property
    def watching(self) -> frozenset[str]:
        return frozenset(self._watching)

    @property
    def using(self) -> str:
        return self._using

    @property
    def _notifies(self) -> bool:
        return self.database.engine.dialect.name == "postgresql"

    async def init(self) -> None:
        """
        Connect and bind to the configured tube.

        Raises:
            QueueError: If the queue database is unreachable.
        """
        try:
            await self.database.init()
            if self._notifies:
                await self._listen()
        except (*DATABASE_ERRORS, asyncpg.PostgresError) as e:
            if self._listener is not None:
                listener, self._listener = self._listener, None
                await listener.close()
            await self.database.close()
            raise QueueError(f"Connect to queue failed: {e}") from e

        _local_waiters[self.database.url].add(self._wakeup)

        self.watch(self.tube)
        self.use(self.tube)
        if self.tube != DEFAULT_TUBE:
            self.ignore(DEFAULT_TUBE)

    async def _listen(self) -> None:
        url = self.database.engine.url.set(drivername="postgresql")
        self._listener = await asyncpg.connect(url.render_as_string(hide_password=False))
        await self._listener.add_listener(QUEUE_NOTIFY_CHANNEL, self._on_notify)
        self._listener.add_termination_listener(self._on_listener_lost)

    def _on_notify(self, connection: Any, pid: int, channel: str, tube: str) -> None:
        if tube in self._watching:
            self._wakeup.set()

    def _on_listener_lost(self, connection: Any) -> None:
        logger.warning(
            "Queue notification connection lost, reserving by polling only",
            extra={"owner": self.owner},
        )
        self._listener = None

    async def close(self) -> None:
        _local_waiters[self.database.url].discard(self._wakeup)
        if self._listener is not None:
            listener, self._listener = self._listener, None
            listener.remove_termination_listener(self._on_listener_lost)
            await listener.close()
        await self.database.close()

    def watch(self, tube: str) -> int:
        """Add a tube to the watch list. Returns the number of watched tubes."""
        self._watching.add(tube)
        return len(self._watching)

    def ignore(self, tube: str) -> int:
        """
        Remove a tube from the watch list.

        Raises:
            QueueError: If it is the last watched tube.
        """
        if self._watching == {tube}:
            raise QueueError(f"Cannot ignore the only watched tube '{tube}'")
        self._watching.discard(tube)
        return len(self._watching)

    def use(self, tube: str) -> str:
        """Set the tube that ``put`` inserts into."""
        self._using = tube
        return tube

    async def reserve(self) -> ReservedJob:
        """
        Reserve the next visible entry from the watched tubes.

        Blocks until an entry is available. Database errors, including a lost
        connection, are logged and the attempt is repeated; they never reach
        the caller.
        """
        while True:
            # cleared before the attempt so a put racing it still wakes us
            self._wakeup.clear()
            try:
                reserved = await self._try_reserve()
            except DATABASE_ERRORS as e:
                logger.warning(
                    "Reserve attempt failed, retrying",
                    extra={"owner": self.owner, "error": str(e)},
                )
                reserved = None

            if reserved is not None:
                return reserved

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
            except TimeoutError:
                pass

    async def _try_reserve(self) -> ReservedJob | None:
        now = utcnow()

        async with self.database.session() as session:
            stmt = (
                select(QueueEntry)
                .where(
                    and_(
                        QueueEntry.tube.in_(self._watching),
                        or_(
                            and_(
                                QueueEntry.state == EntryState.READY,
                                QueueEntry.available_at <= now,
                            ),
                            # time-to-run expired, the previous holder is gone
                            and_(
                                QueueEntry.state == EntryState.RESERVED,
                                QueueEntry.reserved_until < now,
                            ),
                        ),
                    )
                )
                .order_by(QueueEntry.priority.asc(), QueueEntry.id.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )

            result = await session.execute(stmt)
            entry = result.scalar_one_or_none()
            if entry is None:
                return None

            entry.state = EntryState.RESERVED
            entry.reserved_until = now + timedelta(seconds=entry.ttr_seconds)
            entry.reserved_by = self.owner

            reserved = ReservedJob(handle=entry.id, payload=entry.payload)

        logger.debug(
            "Reserved entry",
            extra={"handle": reserved.handle, "owner": self.owner},
        )
        return reserved

    async def put(
        self,
        priority: int,
        delay_seconds: int,
        ttr_seconds: int,
        payload: str,
    ) -> int:
        """
        Insert an entry into the used tube.

        An entry visible right away wakes the reservers watching the tube.

        Args:
            priority: Lower values are reserved first.
            delay_seconds: Seconds before the entry becomes visible.
            ttr_seconds: Seconds a reservation holds the entry.
            payload: Serialized job body.

        Returns:
            The new entry's handle.

        Raises:
            QueueError: If the insert fails.
        """
        entry = QueueEntry(
            tube=self._using,
            priority=priority,
            payload=payload,
            state=EntryState.READY,
            ttr_seconds=ttr_seconds,
            available_at=utcnow() + timedelta(seconds=delay_seconds),
        )
        wake = delay_seconds <= 0

        try:
            async with self.database.session() as session:
                session.add(entry)
                await session.flush()
                handle = entry.id
                if wake and self._notifies:
                    # delivered to listeners on commit
                    await session.execute(
                        select(func.pg_notify(QUEUE_NOTIFY_CHANNEL, self._using))
                    )
        except DATABASE_ERRORS as e:
            raise QueueError(f"Put job error: {e}") from e

        if wake:
            for waiter in list(_local_waiters[self.database.url]):
                waiter.set()

        return handle

    async def put_new(self, task_id: int, from_currency: str, to_currency: str) -> int:
        """
        Insert a fresh conversion job with no recorded attempts.

        Returns:
            The new entry's handle.
        """
        payload = JobPayload(
            task_id=task_id,
            from_currency=from_currency,
            to_currency=to_currency,
        )
        handle = await self.put(
            PRODUCER_PRIORITY,
            0,
            DEFAULT_TTR_SECONDS,
            payload.model_dump_json(by_alias=True, include={"task_id", "from_currency", "to_currency"}),
        )

        logger.info(
            "Job put",
            extra={"handle": handle, "task_id": task_id, "tube": self._using},
        )
        return handle

    async def delete(self, handle: int) -> None:
        """
        Delete an entry.

        A reserved entry can only be deleted by the client holding the
        reservation, unless its time-to-run has run out.

        Raises:
            QueueError: If the entry does not exist, is held by another client
                or the delete fails.
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(QueueEntry).where(
                        and_(
                            QueueEntry.id == handle,
                            or_(
                                QueueEntry.state != EntryState.RESERVED,
                                QueueEntry.reserved_by == self.owner,
                                QueueEntry.reserved_until < utcnow(),
                            ),
                        )
                    )
                )
                deleted = result.rowcount
        except DATABASE_ERRORS as e:
            raise QueueError(f"Destroy job error: {e}") from e

        if deleted == 0:
            raise QueueError(
                f"Destroy job error: entry {handle} not found or reserved by another client"
            )

    async def bury(self, handle: int, priority: int) -> None:
        """
        Move an entry reserved by this client to the buried state.

        Raises:
            QueueError: If this client does not hold the entry or the update fails.
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    update(QueueEntry)
                    .where(
                        and_(
                            QueueEntry.id == handle,
                            QueueEntry.state == EntryState.RESERVED,
                            QueueEntry.reserved_by == self.owner,
                        )
                    )
                    .values(
                        state=EntryState.BURIED,
                        priority=priority,
                        reserved_until=None,
                        reserved_by=None,
                    )
                )
                buried = result.rowcount
        except DATABASE_ERRORS as e:
            raise QueueError(f"Bury job error: {e}") from e

        if buried == 0:
            raise QueueError(f"Bury job error: entry {handle} is not reserved by this client")

    async def count(self, state: EntryState | None = None) -> int:
        """
        Count entries in the used tube, optionally by state.

        Raises:
            QueueError: If the query fails.
        """
        filters = [QueueEntry.tube == self._using]
        if state is not None:
            filters.append(QueueEntry.state == state)

        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(func.count()).select_from(QueueEntry).where(and_(*filters))
                )
                return result.scalar() or 0
        except DATABASE_ERRORS as e:
            raise QueueError(f"Count jobs error: {e}") from e
