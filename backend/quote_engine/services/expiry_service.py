"""
Quote expiry background service.

WHAT: Periodic job that moves open quotes past their validity date to
EXPIRED.

WHY: Expiry is already applied lazily whenever a quote is read, but quotes
nobody opens would otherwise keep their old status in the database (and in
reports run straight off the tables). The sweep keeps stored status close
to the effective one.

HOW: Runs on APScheduler every QUOTE_EXPIRY_SWEEP_INTERVAL_SECONDS, opens
its own session, delegates to QuoteService.expire_due_quotes() (which uses
the lifecycle state machine) and commits once.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.config import settings
from quote_engine.models.base import utcnow
from quote_engine.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_INTERVAL_SECONDS = settings.QUOTE_EXPIRY_SWEEP_INTERVAL_SECONDS


class QuoteExpiryService:
    """
    Background service for quote expiry.

    Example:
        service = QuoteExpiryService()
        await service.expire_overdue_quotes()
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        """
        Initialize expiry service.

        Args:
            session_factory: Optional factory for creating database sessions.
                           Defaults to the application's AsyncSessionLocal.
        """
        self._session_factory = session_factory

    def _get_session(self) -> AsyncSession:
        if self._session_factory:
            return self._session_factory()

        from quote_engine.db.session import AsyncSessionLocal

        return AsyncSessionLocal()

    async def expire_overdue_quotes(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Main job function: expire every overdue open quote.

        Returns:
            Dict with the number of quotes expired
        """
        logger.info("Starting quote expiry sweep")
        start_time = utcnow()
        stats = {"expired": 0}

        session = self._get_session()
        try:
            stats["expired"] = await QuoteService(session).expire_due_quotes(now or start_time)
            await session.commit()
        except Exception as e:
            logger.error(f"Error in quote expiry sweep: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()

        elapsed = (utcnow() - start_time).total_seconds()
        logger.info(f"Quote expiry sweep completed in {elapsed:.2f}s. Expired: {stats['expired']}")
        return stats


_expiry_service: Optional[QuoteExpiryService] = None


def get_expiry_service() -> QuoteExpiryService:
    """Get or create the expiry service instance."""
    global _expiry_service
    if _expiry_service is None:
        _expiry_service = QuoteExpiryService()
    return _expiry_service
