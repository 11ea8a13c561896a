"""
Exchange rate persistence.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select

from fxworker.db.connection import DATABASE_ERRORS, Database
from fxworker.db.models import ExchangeRate
from fxworker.exceptions import StoreError

logger = logging.getLogger(__name__)


class RateStore:
    """
    Repository for fetched exchange rates.

    Every method makes a single attempt; retrying ``save`` is the caller's
    decision.
    """

    def __init__(self, database_url: str):
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy async URL of the rate database.
        """
        self.database = Database(database_url)

    async def init(self) -> None:
        """
        Connect to the rate database.

        Raises:
            StoreError: If the database is unreachable.
        """
        try:
            await self.database.init()
        except DATABASE_ERRORS as e:
            raise StoreError(f"Connect to rate store failed: {e}") from e

    async def close(self) -> None:
        await self.database.close()

    async def save(
        self,
        task_id: int,
        from_currency: str,
        to_currency: str,
        rate: str,
        timestamp: datetime,
    ) -> int:
        """
        Save an exchange rate.

        Returns:
            The record reference of the saved rate.

        Raises:
            StoreError: If the insert fails.
        """
        record = ExchangeRate(
            task_id=task_id,
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            created_at=timestamp,
        )

        try:
            async with self.database.session() as session:
                session.add(record)
                await session.flush()
                reference = record.id
        except DATABASE_ERRORS as e:
            raise StoreError(f"Save exchange rate error: {e}") from e

        logger.debug(
            "Saved exchange rate",
            extra={"task_id": task_id, "record": reference, "rate": rate},
        )
        return reference

    async def get(self, record_reference: int) -> ExchangeRate | None:
        """Get a saved rate by its record reference."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ExchangeRate).where(ExchangeRate.id == record_reference)
                )
                return result.scalar_one_or_none()
        except DATABASE_ERRORS as e:
            raise StoreError(f"Get exchange rate error: {e}") from e

    async def remove(self, record_reference: int) -> bool:
        """
        Remove a saved rate.

        Returns:
            True if a record was removed, False if none matched.

        Raises:
            StoreError: If the delete fails.
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(ExchangeRate).where(ExchangeRate.id == record_reference)
                )
                removed = result.rowcount
        except DATABASE_ERRORS as e:
            raise StoreError(f"Remove rate error: {e}") from e

        return removed > 0
