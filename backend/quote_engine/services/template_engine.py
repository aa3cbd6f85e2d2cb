"""
Template engine.

WHAT: Materializes a new draft quote from a QuoteTemplate.

WHY: Creating a quote from a stock package is the most common way quotes
start. The new quote must be fully independent of the template (fresh line
ids, copied settings) and the template's usage_count must move by exactly
one per successful instantiation.

HOW: All reads, the numbering call, the insert and the usage increment run
in the caller's transaction; if anything fails the request rolls back and
neither the quote nor the increment persists.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.config import settings
from quote_engine.core.exceptions import TemplateNotFoundError, ValidationError
from quote_engine.dao.quote import QuoteDAO
from quote_engine.dao.quote_template import QuoteTemplateDAO
from quote_engine.models.base import as_naive_utc, utcnow
from quote_engine.models.quote import DiscountType, Quote, QuoteStatus
from quote_engine.schemas.quote import QuoteSettings
from quote_engine.services.line_items import copy_line_items, dump_line_items, load_line_items
from quote_engine.services.numbering import QuoteNumberGenerator
from quote_engine.services.pricing import price_quote

logger = logging.getLogger(__name__)


class TemplateEngine:
    """
    Creates quotes from templates.

    Usage:
        engine = TemplateEngine(session)
        quote = await engine.instantiate(template_id, project_id="PRJ-12")
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.template_dao = QuoteTemplateDAO(session)
        self.quote_dao = QuoteDAO(session)
        self.numbering = QuoteNumberGenerator(session)

    async def instantiate(
        self,
        template_id: int,
        project_id: Optional[str] = None,
        client_info: Optional[Dict[str, Any]] = None,
        project_data: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        assigned_to: Optional[str] = None,
        created_by: Optional[str] = None,
        quote_settings: Optional[QuoteSettings] = None,
        tax_rate: Optional[Decimal] = None,
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: Decimal = Decimal("0"),
        valid_until: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """
        Create a draft quote from a template.

        Args:
            template_id: Template to copy
            project_id: Optional external project reference
            client_info: Optional client snapshot
            project_data: Optional site/project snapshot
            title: Quote title (defaults to the template name)
            description: Quote description (defaults to the template description)
            assigned_to: Responsible user
            created_by: Acting user
            quote_settings: Settings override (defaults to the template's settings)
            tax_rate: Tax rate in percent (defaults to DEFAULT_TAX_RATE)
            discount_type: Quote-level discount type
            discount_value: Quote-level discount input
            valid_until: Expiry (defaults to now + validity_days)
            now: Clock reading

        Returns:
            The new quote

        Raises:
            TemplateNotFoundError: If the template doesn't exist
            ValidationError: If valid_until is earlier than now
            ComputationFault: If the template's items price to a negative total
        """
        template = await self.template_dao.get_by_id(template_id)
        if not template:
            raise TemplateNotFoundError(
                message=f"Quote template {template_id} not found",
                resource_type="QuoteTemplate",
                resource_id=template_id,
            )

        now = now or utcnow()
        quote_settings = quote_settings or QuoteSettings.model_validate(template.settings or {})
        if valid_until is None:
            valid_until = now + timedelta(days=quote_settings.validity_days)
        else:
            valid_until = as_naive_utc(valid_until)
            if valid_until < now:
                raise ValidationError(
                    "valid_until cannot be earlier than the quote's creation date",
                    valid_until=valid_until.isoformat(),
                    created_at=now.isoformat(),
                )

        line_items = copy_line_items(load_line_items(template.line_items))
        line_items, totals = price_quote(
            line_items,
            tax_rate if tax_rate is not None else settings.DEFAULT_TAX_RATE,
            discount_type,
            discount_value,
            quote_settings,
        )
        quote_number = await self.numbering.next(now)

        quote = await self.quote_dao.create(
            quote_number=quote_number,
            title=title or template.name,
            description=description if description is not None else template.description,
            status=QuoteStatus.DRAFT,
            version=1,
            project_id=project_id,
            template_id=template.id,
            project_data=project_data,
            line_items=dump_line_items(line_items),
            settings=quote_settings.model_dump(mode="json"),
            valid_until=valid_until,
            created_by=created_by,
            assigned_to=assigned_to,
            created_at=now,
            updated_at=now,
            **Quote.client_columns(client_info),
            **totals.to_dict(),
        )

        usage_count = await self.template_dao.increment_usage(template.id)
        logger.info(
            f"Created quote {quote.quote_number} from template {template.id} "
            f"'{template.name}' (usage_count={usage_count})"
        )
        return quote
