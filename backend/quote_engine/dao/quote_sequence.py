"""
Quote number sequence Data Access Object (DAO).

WHAT: Atomic per-period counter backing quote numbers.

WHY: Two quotes created at the same moment must never receive the same
number. The month row is created with INSERT ... ON CONFLICT DO NOTHING and
advanced with UPDATE ... RETURNING, both single statements that the
database serializes on the row.
"""

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.dao.base import BaseDAO
from quote_engine.models.quote_sequence import QuoteNumberSequence


class QuoteNumberSequenceDAO(BaseDAO[QuoteNumberSequence]):
    """Data Access Object for QuoteNumberSequence model."""

    def __init__(self, session: AsyncSession):
        super().__init__(QuoteNumberSequence, session)

    async def _ensure_period(self, period: str) -> None:
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        await self.session.execute(
            insert(QuoteNumberSequence)
            .values(period=period, last_value=0)
            .on_conflict_do_nothing(index_elements=["period"])
        )

    async def next_value(self, period: str) -> int:
        """
        Issue the next sequence value for a period.

        Args:
            period: Period key (YYMM)

        Returns:
            The issued value (1 for the first quote of the period)
        """
        await self._ensure_period(period)
        result = await self.session.execute(
            update(QuoteNumberSequence)
            .where(QuoteNumberSequence.period == period)
            .values(last_value=QuoteNumberSequence.last_value + 1)
            .returning(QuoteNumberSequence.last_value)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one()
