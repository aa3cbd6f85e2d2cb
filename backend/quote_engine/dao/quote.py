"""
Quote Data Access Object (DAO).

WHAT: Database operations for the Quote model.

WHY: The DAO pattern:
1. Separates data access from business logic
2. Keeps search/sort SQL in one place
3. Provides row locking so mutations of one quote are serialized

HOW: Extends BaseDAO with quote-specific queries:
- Lookup by number and share token
- Locked reads (SELECT ... FOR UPDATE)
- Free-text search and sorting
- Expiry candidates for the lazy/periodic expiry passes
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.exceptions import DuplicateQuoteNumberError
from quote_engine.dao.base import BaseDAO
from quote_engine.models.quote import Quote, QuoteStatus

# Statuses that can still expire
EXPIRABLE_STATUSES = (
    QuoteStatus.DRAFT,
    QuoteStatus.PENDING_REVIEW,
    QuoteStatus.SENT,
    QuoteStatus.VIEWED,
)

SORT_FIELDS = ("quote_number", "client", "status", "total", "created_at", "updated_at")


class QuoteDAO(BaseDAO[Quote]):
    """
    Data Access Object for Quote model.

    WHAT: Provides CRUD and query operations for quotes.

    HOW: Extends BaseDAO with quote-specific methods.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize QuoteDAO.

        Args:
            session: Async database session
        """
        super().__init__(Quote, session)

    async def create(self, **kwargs: Any) -> Quote:
        """
        Insert a quote.

        Raises:
            DuplicateQuoteNumberError: If another transaction took the
                quote number between the availability check and the insert
            IntegrityError: For any other constraint violation
        """
        try:
            return await super().create(**kwargs)
        except IntegrityError as exc:
            if "quote_number" not in str(exc.orig):
                raise
            raise DuplicateQuoteNumberError(
                f"Quote number {kwargs.get('quote_number')} already exists",
                quote_number=kwargs.get("quote_number"),
            ) from exc

    async def get_for_update(self, quote_id: int) -> Optional[Quote]:
        """
        Get a quote and lock its row until the transaction ends.

        WHY: Two concurrent edits of the same quote must not both read the
        old line items and overwrite each other's totals. The lock is a
        no-op on SQLite, which serializes writers anyway.

        Args:
            quote_id: Quote ID

        Returns:
            Quote if found, None otherwise
        """
        result = await self.session.execute(
            select(Quote).where(Quote.id == quote_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def number_exists(self, quote_number: str) -> bool:
        """True if the quote number is already taken."""
        return await self.exists(quote_number=quote_number)

    async def get_by_share_token(self, token: str) -> Optional[Quote]:
        """Get a quote by its share link token, locked for the read receipt."""
        result = await self.session.execute(
            select(Quote).where(Quote.share_token == token).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Quote]:
        """
        Snapshot of every quote, oldest first.

        WHY: Analytics aggregates over the whole repository; deleted quotes
        are gone (hard delete) so they never appear here.
        """
        result = await self.session.execute(select(Quote).order_by(Quote.created_at, Quote.id))
        return list(result.scalars().all())

    async def search(
        self,
        status: Optional[QuoteStatus] = None,
        q: Optional[str] = None,
        project_id: Optional[str] = None,
        sort_by: str = "updated_at",
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Quote], int]:
        """
        Search quotes.

        Args:
            status: Only quotes in this status
            q: Case-insensitive text matched against quote number, client
               name, client company and title
            project_id: Only quotes linked to this project
            sort_by: One of SORT_FIELDS
            sort_order: "asc" or "desc"
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            Tuple of (quotes, total matching count)
        """
        conditions = []
        if status is not None:
            conditions.append(Quote.status == status)
        if project_id is not None:
            conditions.append(Quote.project_id == project_id)
        if q:
            pattern = f"%{q.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(Quote.quote_number).like(pattern),
                    func.lower(Quote.title).like(pattern),
                    func.lower(func.coalesce(Quote.client_name, "")).like(pattern),
                    func.lower(func.coalesce(Quote.client_company, "")).like(pattern),
                )
            )

        count_result = await self.session.execute(
            select(func.count()).select_from(Quote).where(*conditions)
        )
        total = count_result.scalar_one()

        sort_columns = {
            "quote_number": Quote.quote_number,
            "client": func.lower(
                func.coalesce(func.nullif(Quote.client_name, ""), Quote.client_company, "")
            ),
            "status": Quote.status,
            "total": Quote.total,
            "created_at": Quote.created_at,
            "updated_at": Quote.updated_at,
        }
        column = sort_columns.get(sort_by, Quote.updated_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        tiebreak = Quote.id.asc() if sort_order == "asc" else Quote.id.desc()

        result = await self.session.execute(
            select(Quote)
            .where(*conditions)
            .order_by(order, tiebreak)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_due_for_expiry(self, now: datetime, limit: int = 500) -> List[Quote]:
        """
        Open quotes whose validity has passed, locked for the expiry pass.

        Args:
            now: Clock reading
            limit: Maximum quotes to return in one batch

        Returns:
            List of quotes due to expire
        """
        result = await self.session.execute(
            select(Quote)
            .where(
                Quote.status.in_(EXPIRABLE_STATUSES),
                Quote.valid_until < now,
            )
            .order_by(Quote.valid_until)
            .limit(limit)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def detach_template(self, template_id: int) -> int:
        """
        Clear template_id on quotes created from a template being deleted.

        Returns:
            Number of quotes detached
        """
        result = await self.session.execute(
            update(Quote)
            .where(Quote.template_id == template_id)
            .values(template_id=None)
        )
        return result.rowcount
