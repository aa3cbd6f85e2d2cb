"""
Quote numbering.

WHAT: Issues human-readable, unique quote numbers such as ``QT2610-0007``.

WHY: Contractors and clients refer to quotes by number on the phone and in
email, so numbers must be short, sortable by creation and never reused.

HOW: <prefix><YY><MM>-<NNNN>, where NNNN comes from a per-month database
sequence advanced atomically (see QuoteNumberSequenceDAO). The counter
widens past 9999 rather than wrapping. Imported quotes may already hold a
number in the generated format, so values whose number is taken are skipped.
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.config import settings
from quote_engine.dao.quote import QuoteDAO
from quote_engine.dao.quote_sequence import QuoteNumberSequenceDAO
from quote_engine.models.base import utcnow

logger = logging.getLogger(__name__)


def period_key(now: datetime) -> str:
    """YYMM period the sequence restarts on."""
    return now.strftime("%y%m")


def format_quote_number(prefix: str, period: str, value: int) -> str:
    return f"{prefix}{period}-{value:04d}"


class QuoteNumberGenerator:
    """
    Generates quote numbers from the per-month sequence.

    Usage:
        generator = QuoteNumberGenerator(session)
        number = await generator.next()
    """

    def __init__(self, session: AsyncSession, prefix: Optional[str] = None):
        self.sequence_dao = QuoteNumberSequenceDAO(session)
        self.quote_dao = QuoteDAO(session)
        self.prefix = prefix if prefix is not None else settings.QUOTE_NUMBER_PREFIX

    async def next(self, now: Optional[datetime] = None) -> str:
        """
        Issue the next quote number.

        Args:
            now: Clock reading used for the period (defaults to utcnow)

        Returns:
            A quote number unique across the repository
        """
        period = period_key(now or utcnow())
        while True:
            value = await self.sequence_dao.next_value(period)
            number = format_quote_number(self.prefix, period, value)
            if not await self.quote_dao.number_exists(number):
                break
            logger.info(f"Skipping quote number {number}: already held by an imported quote")
        logger.debug(f"Issued quote number {number}")
        return number
