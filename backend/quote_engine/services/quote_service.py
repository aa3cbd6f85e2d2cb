"""
Quote service (repository operations).

WHAT: Business operations on quotes: create, read, search, replace, patch,
delete, duplicate, line item editing, status transitions and share links.

WHY: Routes, chat assistants and background jobs all change quotes; keeping
every write behind this service guarantees that:
1. Totals are re-derived by the pricing calculator on every mutation
2. Status only changes through the lifecycle state machine
3. Quote numbers come from the atomic sequence
4. Validation happens before anything is modified

HOW: One QuoteService per request/session. Mutations lock the quote row
(SELECT ... FOR UPDATE), apply lazy expiry, compute the new line items and
totals, and only then assign them to the model. Errors propagate to
get_db(), which rolls the transaction back.
"""

import copy
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.config import settings
from quote_engine.core.exceptions import (
    DuplicateQuoteNumberError,
    InvalidStateTransitionError,
    LineItemNotFoundError,
    QuoteNotFoundError,
    ValidationError,
)
from quote_engine.dao.quote import QuoteDAO
from quote_engine.models.base import as_naive_utc, utcnow
from quote_engine.models.quote import Quote, QuoteStatus
from quote_engine.schemas.quote import (
    CatalogProduct,
    ExpectedTotals,
    LineItem,
    LineItemInput,
    LineItemUpdate,
    QuoteCreate,
    QuotePatch,
    QuoteReplace,
    QuoteSettings,
)
from quote_engine.services import lifecycle
from quote_engine.services.line_items import (
    copy_line_items,
    dump_line_items,
    line_item_from_product,
    line_items_from_charger_selection,
    load_line_items,
    materialize,
)
from quote_engine.services.numbering import QuoteNumberGenerator
from quote_engine.services.pricing import QuoteTotals, price_line_item, price_quote
from quote_engine.services.template_engine import TemplateEngine

logger = logging.getLogger(__name__)

# Fields of QuotePatch that may not be set to null
_NON_NULLABLE_PATCH_FIELDS = {
    "title",
    "client_info",
    "settings",
    "tax_rate",
    "discount_type",
    "discount_value",
    "valid_until",
}
# Fields whose change re-prices the quote (settings carry the volume tiers)
_PRICING_FIELDS = {"tax_rate", "discount_type", "discount_value", "settings"}


class QuoteService:
    """
    Service for quote operations.

    Usage:
        service = QuoteService(session)
        quote = await service.create_quote(QuoteCreate(project_id="PRJ-1"), created_by="u-1")
        quote = await service.add_line_item(quote.id, LineItemInput(...))
        quote = await service.send_quote(quote.id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.quote_dao = QuoteDAO(session)
        self.numbering = QuoteNumberGenerator(session)
        self.template_engine = TemplateEngine(session)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_quote(self, quote_id: int, now: Optional[datetime] = None) -> Quote:
        """
        Get a quote, applying lazy expiry.

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
        """
        quote = await self.quote_dao.get_by_id(quote_id)
        if not quote:
            raise self._not_found(quote_id)

        if lifecycle.expire_if_due(quote, now):
            await self.session.flush()
        return quote

    async def get_all(self) -> List[Quote]:
        """
        Snapshot of every quote as stored.

        WHY: Analytics runs at any time and must not take write locks, so
        overdue quotes are not expired here; readers resolve them with
        lifecycle.effective_status.
        """
        return await self.quote_dao.list_all()

    async def search(
        self,
        status: Optional[QuoteStatus] = None,
        q: Optional[str] = None,
        project_id: Optional[str] = None,
        sort_by: str = "updated_at",
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 100,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Quote], int]:
        """
        Search quotes (status filter, free text, sort).

        WHY: Overdue quotes are expired first so a status=sent filter never
        returns a quote whose validity has passed.
        """
        await self.expire_due_quotes(now)
        return await self.quote_dao.search(
            status=status,
            q=q,
            project_id=project_id,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

    async def expire_due_quotes(
        self,
        now: Optional[datetime] = None,
        batch_size: int = 500,
    ) -> int:
        """
        Expire every open quote whose validity has passed.

        Returns:
            Number of quotes expired
        """
        now = now or utcnow()
        expired = 0
        while True:
            batch = await self.quote_dao.get_due_for_expiry(now, limit=batch_size)
            if not batch:
                break
            for quote in batch:
                if lifecycle.expire_if_due(quote, now):
                    expired += 1
            await self.session.flush()
            if len(batch) < batch_size:
                break

        if expired:
            logger.info(f"Expired {expired} overdue quotes")
        return expired

    # =========================================================================
    # Create / replace / patch / delete / duplicate
    # =========================================================================

    async def create_quote(
        self,
        data: QuoteCreate,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Create a quote, blank or from a template.

        Args:
            data: Creation request
            created_by: Acting user
            now: Clock reading

        Returns:
            The new DRAFT quote

        Raises:
            TemplateNotFoundError: If template_id doesn't exist
            DuplicateQuoteNumberError: If a supplied quote_number is taken
            ValidationError: If valid_until is in the past or fields conflict
            ComputationFault: If the initial line items price negative
        """
        now = now or utcnow()

        if data.template_id is not None:
            if data.line_items or data.quote_number or data.charger_selection:
                raise ValidationError(
                    "line_items, charger_selection and quote_number cannot be combined with template_id",
                    template_id=data.template_id,
                )
            return await self.template_engine.instantiate(
                data.template_id,
                project_id=data.project_id,
                client_info=self._dump(data.client_info),
                project_data=self._dump(data.project_data),
                title=data.title,
                description=data.description,
                assigned_to=data.assigned_to,
                created_by=created_by,
                quote_settings=data.settings,
                tax_rate=data.tax_rate,
                discount_type=data.discount_type,
                discount_value=data.discount_value,
                valid_until=data.valid_until,
                now=now,
            )

        if data.quote_number and await self.quote_dao.number_exists(data.quote_number):
            raise DuplicateQuoteNumberError(
                f"Quote number {data.quote_number} already exists",
                quote_number=data.quote_number,
            )

        quote_settings = data.settings or QuoteSettings(validity_days=settings.DEFAULT_VALIDITY_DAYS)
        valid_until = self._check_valid_until(
            data.valid_until or now + timedelta(days=quote_settings.validity_days),
            now,
        )
        line_item_inputs = list(data.line_items)
        if data.charger_selection is not None:
            line_item_inputs.extend(line_items_from_charger_selection(data.charger_selection))
        line_items = materialize(line_item_inputs)
        tax_rate = data.tax_rate if data.tax_rate is not None else settings.DEFAULT_TAX_RATE
        line_items, totals = price_quote(
            line_items, tax_rate, data.discount_type, data.discount_value, quote_settings
        )

        quote_number = data.quote_number or await self.numbering.next(now)
        quote = await self.quote_dao.create(
            quote_number=quote_number,
            title=data.title or f"Quote {quote_number}",
            description=data.description,
            status=QuoteStatus.DRAFT,
            version=1,
            project_id=data.project_id,
            project_data=self._dump(data.project_data),
            line_items=dump_line_items(line_items),
            settings=quote_settings.model_dump(mode="json"),
            valid_until=valid_until,
            created_by=created_by,
            assigned_to=data.assigned_to,
            created_at=now,
            updated_at=now,
            **Quote.client_columns(self._dump(data.client_info)),
            **totals.to_dict(),
        )
        logger.info(f"Created quote {quote.quote_number} (id={quote.id}, project={quote.project_id})")
        return quote

    async def replace_quote(
        self,
        quote_id: int,
        data: QuoteReplace,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Full replace of a quote's editable content.

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
            InvalidStateTransitionError: If the quote is no longer editable
            ValidationError: If supplied totals disagree with derived totals
        """
        now = now or utcnow()
        quote = await self._get_for_edit(quote_id, now)

        valid_until = self._check_valid_until(data.valid_until, quote.created_at)
        existing_ids = {item.get("id") for item in (quote.line_items or [])}
        line_items = materialize(data.line_items, existing_ids)
        line_items, totals = price_quote(
            line_items, data.tax_rate, data.discount_type, data.discount_value, data.settings
        )
        if data.totals is not None:
            self._check_expected_totals(quote, data.totals, totals)

        quote.title = data.title
        quote.description = data.description
        quote.project_id = data.project_id
        quote.set_client_info(self._dump(data.client_info))
        quote.project_data = self._dump(data.project_data)
        quote.settings = data.settings.model_dump(mode="json")
        quote.valid_until = valid_until
        quote.assigned_to = data.assigned_to
        quote.line_items = dump_line_items(line_items)
        quote.apply_totals(totals)
        return await self._save(quote, now)

    async def patch_quote(
        self,
        quote_id: int,
        data: QuotePatch,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Partial update with a typed patch.

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
            InvalidStateTransitionError: If the quote is no longer editable
            ValidationError: If a required field is set to null
        """
        now = now or utcnow()
        changes = data.model_dump(exclude_unset=True)
        quote = await self._get_for_edit(quote_id, now)
        if not changes:
            return quote

        nulled = sorted(field for field in _NON_NULLABLE_PATCH_FIELDS if field in changes and changes[field] is None)
        if nulled:
            raise ValidationError(
                f"Fields cannot be null: {', '.join(nulled)}",
                fields=nulled,
            )

        line_items: Optional[List[LineItem]] = None
        totals: Optional[QuoteTotals] = None
        if _PRICING_FIELDS & changes.keys():
            line_items, totals = price_quote(
                load_line_items(quote.line_items),
                changes.get("tax_rate", quote.tax_rate),
                changes.get("discount_type", quote.discount_type),
                changes.get("discount_value", quote.discount_value),
                data.settings if "settings" in changes else quote.settings,
            )

        valid_until = None
        if "valid_until" in changes:
            valid_until = self._check_valid_until(data.valid_until, quote.created_at)

        for field in ("title", "description", "project_id", "assigned_to"):
            if field in changes:
                setattr(quote, field, changes[field])
        if "client_info" in changes:
            quote.set_client_info(self._dump(data.client_info))
        if "project_data" in changes:
            quote.project_data = self._dump(data.project_data)
        if "settings" in changes:
            quote.settings = data.settings.model_dump(mode="json")
        if valid_until is not None:
            quote.valid_until = valid_until
        if totals is not None:
            quote.line_items = dump_line_items(line_items)
            quote.apply_totals(totals)
        return await self._save(quote, now)

    async def delete_quote(self, quote_id: int) -> bool:
        """
        Hard-delete a quote. Templates are never touched.

        Returns:
            True if the quote existed
        """
        deleted = await self.quote_dao.delete(quote_id)
        if deleted:
            logger.info(f"Deleted quote {quote_id}")
        return deleted

    async def duplicate_quote(
        self,
        quote_id: int,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Copy a quote into a new, independent DRAFT.

        The copy gets a new id and number, fresh line ids, a new validity
        window and no status history; its source is recorded in
        source_quote_id.

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
        """
        now = now or utcnow()
        source = await self.get_quote(quote_id, now)

        quote_settings = QuoteSettings.model_validate(source.settings or {})
        line_items = copy_line_items(load_line_items(source.line_items))
        line_items, totals = price_quote(
            line_items, source.tax_rate, source.discount_type, source.discount_value, quote_settings
        )
        quote_number = await self.numbering.next(now)

        duplicate = await self.quote_dao.create(
            quote_number=quote_number,
            title=f"{source.title} (Copy)"[:255],
            description=source.description,
            status=QuoteStatus.DRAFT,
            version=1,
            project_id=source.project_id,
            template_id=source.template_id,
            source_quote_id=source.id,
            project_data=copy.deepcopy(source.project_data),
            line_items=dump_line_items(line_items),
            settings=quote_settings.model_dump(mode="json"),
            valid_until=now + timedelta(days=quote_settings.validity_days),
            created_by=created_by or source.created_by,
            assigned_to=source.assigned_to,
            created_at=now,
            updated_at=now,
            **Quote.client_columns(copy.deepcopy(source.client_info)),
            **totals.to_dict(),
        )
        logger.info(f"Duplicated quote {source.quote_number} as {duplicate.quote_number}")
        return duplicate

    # =========================================================================
    # Line items
    # =========================================================================

    async def add_line_item(
        self,
        quote_id: int,
        item: LineItemInput,
        position: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """Append (or insert at position) a line item."""

        def mutate(items: List[LineItem]) -> List[LineItem]:
            new_item = materialize([item])[0]
            index = len(items) if position is None else max(0, min(position, len(items)))
            return items[:index] + [new_item] + items[index:]

        return await self._mutate_line_items(quote_id, mutate, now)

    async def add_catalog_product(
        self,
        quote_id: int,
        product: CatalogProduct,
        now: Optional[datetime] = None,
    ) -> Quote:
        """Append a line item copied from a catalog record."""

        def mutate(items: List[LineItem]) -> List[LineItem]:
            return items + [line_item_from_product(product)]

        return await self._mutate_line_items(quote_id, mutate, now)

    async def update_line_item(
        self,
        quote_id: int,
        line_item_id: str,
        changes: LineItemUpdate,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Apply a typed patch to one line item.

        Raises:
            LineItemNotFoundError: If the line id is not on the quote
            ValidationError: If the patched item is invalid
        """
        patch = changes.model_dump(exclude_unset=True)

        def mutate(items: List[LineItem]) -> List[LineItem]:
            index = self._line_index(quote_id, items, line_item_id)
            merged = {**items[index].model_dump(), **patch}
            try:
                updated = LineItem.model_validate(merged)
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid line item update",
                    line_item_id=line_item_id,
                    errors=[f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()],
                ) from exc
            return items[:index] + [price_line_item(updated)] + items[index + 1:]

        return await self._mutate_line_items(quote_id, mutate, now)

    async def remove_line_item(
        self,
        quote_id: int,
        line_item_id: str,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Remove one line item.

        Raises:
            LineItemNotFoundError: If the line id is not on the quote
        """

        def mutate(items: List[LineItem]) -> List[LineItem]:
            index = self._line_index(quote_id, items, line_item_id)
            return items[:index] + items[index + 1:]

        return await self._mutate_line_items(quote_id, mutate, now)

    async def reorder_line_items(
        self,
        quote_id: int,
        line_item_ids: List[str],
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Reorder line items.

        Raises:
            ValidationError: If the ids are not a permutation of the current ids
        """

        def mutate(items: List[LineItem]) -> List[LineItem]:
            by_id = {item.id: item for item in items}
            if len(line_item_ids) != len(items) or set(line_item_ids) != set(by_id):
                raise ValidationError(
                    "line_item_ids must list every line item exactly once",
                    quote_id=quote_id,
                )
            return [by_id[line_id] for line_id in line_item_ids]

        return await self._mutate_line_items(quote_id, mutate, now)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def change_status(
        self,
        quote_id: int,
        target: QuoteStatus,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Move a quote to another status through the state machine.

        Lazy expiry runs first, so accepting an overdue quote fails with
        InvalidStateTransitionError (expired -> accepted).

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
            InvalidStateTransitionError: If the transition is not allowed
        """
        now = now or utcnow()
        target = QuoteStatus(target)
        quote = await self._get_locked(quote_id, now, apply_expiry=target != QuoteStatus.EXPIRED)
        lifecycle.transition(quote, target, now, reason=reason, notes=notes)
        return await self._save(quote, now)

    async def submit_for_review(self, quote_id: int, now: Optional[datetime] = None) -> Quote:
        return await self.change_status(quote_id, QuoteStatus.PENDING_REVIEW, now=now)

    async def send_quote(self, quote_id: int, now: Optional[datetime] = None) -> Quote:
        return await self.change_status(quote_id, QuoteStatus.SENT, now=now)

    async def mark_viewed(self, quote_id: int, now: Optional[datetime] = None) -> Quote:
        return await self.change_status(quote_id, QuoteStatus.VIEWED, now=now)

    async def accept_quote(
        self,
        quote_id: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        return await self.change_status(quote_id, QuoteStatus.ACCEPTED, notes=notes, now=now)

    async def reject_quote(
        self,
        quote_id: int,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        return await self.change_status(
            quote_id, QuoteStatus.REJECTED, reason=reason, notes=notes, now=now
        )

    async def expire_quote(self, quote_id: int, now: Optional[datetime] = None) -> Quote:
        return await self.change_status(quote_id, QuoteStatus.EXPIRED, now=now)

    # =========================================================================
    # Share links
    # =========================================================================

    async def create_share_link(self, quote_id: int, now: Optional[datetime] = None) -> str:
        """
        Return the quote's share token, creating one if needed.

        Raises:
            QuoteNotFoundError: If the quote doesn't exist
        """
        now = now or utcnow()
        quote = await self._get_locked(quote_id, now)
        if not quote.share_token:
            quote.share_token = secrets.token_urlsafe(32)
            await self._save(quote, now)
            logger.info(f"Created share link for quote {quote.quote_number}")
        return quote.share_token

    async def open_shared_quote(self, token: str, now: Optional[datetime] = None) -> Quote:
        """
        Client opens a share link: count the view and record the read receipt.

        A SENT quote moves to VIEWED; other statuses are unchanged.

        Raises:
            QuoteNotFoundError: If no quote has this token
        """
        now = now or utcnow()
        quote = await self.quote_dao.get_by_share_token(token)
        if not quote:
            raise QuoteNotFoundError(message="Shared quote not found", resource_type="Quote")

        lifecycle.expire_if_due(quote, now)
        quote.view_count = (quote.view_count or 0) + 1
        if quote.status == QuoteStatus.SENT:
            lifecycle.transition(quote, QuoteStatus.VIEWED, now)
        await self.session.flush()
        await self.session.refresh(quote)
        return quote

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _not_found(quote_id: int) -> QuoteNotFoundError:
        return QuoteNotFoundError(
            message=f"Quote {quote_id} not found",
            resource_type="Quote",
            resource_id=quote_id,
        )

    @staticmethod
    def _dump(model: Any) -> Optional[Dict[str, Any]]:
        return model.model_dump(mode="json") if model is not None else None

    @staticmethod
    def _check_valid_until(valid_until: datetime, created_at: datetime) -> datetime:
        valid_until = as_naive_utc(valid_until)
        if valid_until < created_at:
            raise ValidationError(
                "valid_until cannot be earlier than the quote's creation date",
                valid_until=valid_until.isoformat(),
                created_at=created_at.isoformat(),
            )
        return valid_until

    @staticmethod
    def _check_expected_totals(quote: Quote, expected: ExpectedTotals, totals: QuoteTotals) -> None:
        mismatched = {}
        for field, value in expected.model_dump(exclude_none=True).items():
            derived = getattr(totals, field)
            if value.compare(derived) != 0:
                mismatched[field] = {"supplied": str(value), "derived": str(derived)}
        if mismatched:
            raise ValidationError(
                "Supplied totals do not match the totals derived from line items",
                quote_id=quote.id,
                mismatched=mismatched,
            )

    @staticmethod
    def _line_index(quote_id: int, items: List[LineItem], line_item_id: str) -> int:
        for index, item in enumerate(items):
            if item.id == line_item_id:
                return index
        raise LineItemNotFoundError(
            message=f"Line item {line_item_id} not found on quote {quote_id}",
            resource_type="LineItem",
            resource_id=line_item_id,
            quote_id=quote_id,
        )

    async def _get_locked(
        self,
        quote_id: int,
        now: datetime,
        apply_expiry: bool = True,
    ) -> Quote:
        quote = await self.quote_dao.get_for_update(quote_id)
        if not quote:
            raise self._not_found(quote_id)
        if apply_expiry:
            lifecycle.expire_if_due(quote, now)
        return quote

    async def _get_for_edit(self, quote_id: int, now: datetime) -> Quote:
        quote = await self._get_locked(quote_id, now)
        if not quote.is_editable:
            raise InvalidStateTransitionError(
                f"Quote {quote.quote_number} cannot be edited in status {QuoteStatus(quote.status).value}",
                quote_id=quote.id,
                current_state=QuoteStatus(quote.status).value,
                requested_state="edit",
            )
        return quote

    async def _mutate_line_items(
        self,
        quote_id: int,
        mutate: Callable[[List[LineItem]], List[LineItem]],
        now: Optional[datetime],
    ) -> Quote:
        now = now or utcnow()
        quote = await self._get_for_edit(quote_id, now)
        line_items = mutate(load_line_items(quote.line_items))
        line_items, totals = price_quote(
            line_items, quote.tax_rate, quote.discount_type, quote.discount_value, quote.settings
        )

        quote.line_items = dump_line_items(line_items)
        quote.apply_totals(totals)
        return await self._save(quote, now)

    async def _save(self, quote: Quote, now: datetime) -> Quote:
        quote.updated_at = now
        await self.session.flush()
        await self.session.refresh(quote)
        return quote
