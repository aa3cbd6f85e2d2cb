"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
so tests stay short and keep working when models change.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.models.base import utcnow
from quote_engine.models.quote import DiscountType, Quote, QuoteStatus
from quote_engine.models.quote_template import QuoteTemplate
from quote_engine.schemas.quote import LineItemInput
from quote_engine.services.line_items import dump_line_items, materialize
from quote_engine.services.pricing import price_quote


def line_item(
    name: str = "7kW AC Wallbox",
    quantity: str = "1",
    unit_price: str = "1000.00",
    markup_percent: str = "0",
    **extra: Any,
) -> Dict[str, Any]:
    """Line item payload (API / schema shape)."""
    return {
        "name": name,
        "quantity": quantity,
        "unit_price": unit_price,
        "markup_percent": markup_percent,
        **extra,
    }


class QuoteTemplateFactory:
    """Factory for creating QuoteTemplate test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        name: str = "Test Package",
        line_items: Optional[List[Dict[str, Any]]] = None,
        settings: Optional[Dict[str, Any]] = None,
        category: Optional[str] = "residential",
        is_default: bool = False,
        usage_count: int = 0,
    ) -> QuoteTemplate:
        """
        Create a template for testing.

        Args:
            session: Database session
            name: Template name
            line_items: Line item payloads (default: one 1000.00 item)
            settings: Quote settings dict
            category: Template category
            is_default: Stock template flag
            usage_count: Initial usage counter

        Returns:
            Created QuoteTemplate instance
        """
        items = materialize(
            LineItemInput.model_validate(item)
            for item in (line_items if line_items is not None else [line_item()])
        )
        template = QuoteTemplate(
            name=name,
            description=f"Description for {name}",
            category=category,
            is_default=is_default,
            line_items=dump_line_items(items),
            settings=settings or {"validity_days": 30},
            usage_count=usage_count,
        )
        session.add(template)
        await session.commit()
        await session.refresh(template)
        return template


class QuoteFactory:
    """
    Factory for creating Quote test instances.

    WHY: Builds quotes directly (bypassing the lifecycle) so tests can start
    from any status, with totals derived the same way the service does.
    """

    _counter = 0

    @classmethod
    async def create(
        cls,
        session: AsyncSession,
        status: QuoteStatus = QuoteStatus.DRAFT,
        line_items: Optional[List[Dict[str, Any]]] = None,
        tax_rate: Decimal = Decimal("10"),
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: Decimal = Decimal("0"),
        client_info: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        quote_number: Optional[str] = None,
        **fields: Any,
    ) -> Quote:
        """
        Create a quote for testing.

        Args:
            session: Database session
            status: Stored status
            line_items: Line item payloads (default: one 1000.00 item)
            tax_rate: Tax rate in percent
            discount_type: percentage or fixed
            discount_value: Discount input
            client_info: Client snapshot
            created_at: Creation timestamp (default: now)
            valid_until: Expiry (default: created_at + 30 days)
            quote_number: Quote number (default: unique test number)
            **fields: Any other Quote column (sent_at, accepted_at, ...)

        Returns:
            Created Quote instance
        """
        cls._counter += 1
        created_at = created_at or utcnow()
        items = materialize(
            LineItemInput.model_validate(item)
            for item in (line_items if line_items is not None else [line_item()])
        )
        items, totals = price_quote(items, tax_rate, discount_type, discount_value, fields.get("settings"))

        quote = Quote(
            quote_number=quote_number or f"TEST-{cls._counter:05d}",
            title=fields.pop("title", f"Test Quote {cls._counter}"),
            status=status,
            version=1,
            line_items=dump_line_items(items),
            settings=fields.pop("settings", {"validity_days": 30}),
            valid_until=valid_until or created_at + timedelta(days=30),
            created_at=created_at,
            updated_at=created_at,
            **Quote.client_columns(client_info or {"name": "Test Client"}),
            **totals.to_dict(),
            **fields,
        )
        session.add(quote)
        await session.commit()
        await session.refresh(quote)
        return quote
