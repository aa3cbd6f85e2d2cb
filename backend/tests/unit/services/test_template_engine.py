"""
Unit tests for the template engine and template management.

WHY: Verifies that:
1. A template instantiates into an independent DRAFT quote
2. Totals use the default tax rate
3. usage_count advances by exactly one per instantiation
4. Editing or deleting a template never changes existing quotes
"""

from decimal import Decimal

import pytest

from quote_engine.core.exceptions import TemplateNotFoundError
from quote_engine.dao.quote import QuoteDAO
from quote_engine.models.quote import QuoteStatus
from quote_engine.schemas.quote import LineItemInput
from quote_engine.schemas.quote_template import QuoteTemplateCreate
from quote_engine.services.default_templates import DEFAULT_TEMPLATES
from quote_engine.services.template_engine import TemplateEngine
from quote_engine.services.template_service import QuoteTemplateService
from tests.factories import QuoteTemplateFactory, line_item


class TestTemplateEngine:
    """Tests for TemplateEngine.instantiate."""

    @pytest.mark.asyncio
    async def test_subtotal_1000_with_ten_percent_tax(self, db_session, now):
        template = await QuoteTemplateFactory.create(
            db_session,
            line_items=[line_item(quantity="2", unit_price="500.00")],
            settings={"validity_days": 14},
        )

        quote = await TemplateEngine(db_session).instantiate(
            template.id,
            project_id="PRJ-12",
            client_info={"name": "Jane Citizen"},
            now=now,
        )

        assert quote.status == QuoteStatus.DRAFT
        assert quote.template_id == template.id
        assert quote.project_id == "PRJ-12"
        assert quote.subtotal == Decimal("1000.00")
        assert quote.tax_amount == Decimal("100.00")
        assert quote.total == Decimal("1100.00")
        assert (quote.valid_until - now).days == 14
        assert quote.client_name == "Jane Citizen"

        await db_session.refresh(template)
        assert template.usage_count == 1

    @pytest.mark.asyncio
    async def test_title_defaults_to_template_name(self, db_session, now):
        template = await QuoteTemplateFactory.create(db_session, name="Fleet Depot Package")

        quote = await TemplateEngine(db_session).instantiate(template.id, now=now)

        assert quote.title == "Fleet Depot Package"

    @pytest.mark.asyncio
    async def test_line_items_are_copies_with_fresh_ids(self, db_session, now):
        template = await QuoteTemplateFactory.create(db_session)

        quote = await TemplateEngine(db_session).instantiate(template.id, now=now)

        assert quote.line_items[0]["name"] == template.line_items[0]["name"]
        assert quote.line_items[0]["id"] != template.line_items[0]["id"]

    @pytest.mark.asyncio
    async def test_usage_count_counts_every_instantiation(self, db_session, now):
        template = await QuoteTemplateFactory.create(db_session)
        engine = TemplateEngine(db_session)

        first = await engine.instantiate(template.id, now=now)
        second = await engine.instantiate(template.id, now=now)

        await db_session.refresh(template)
        assert template.usage_count == 2
        assert first.quote_number != second.quote_number

    @pytest.mark.asyncio
    async def test_unknown_template(self, db_session):
        with pytest.raises(TemplateNotFoundError):
            await TemplateEngine(db_session).instantiate(424242)


class TestQuoteTemplateService:
    """Tests for template CRUD and seeding."""

    @pytest.mark.asyncio
    async def test_replace_does_not_touch_existing_quotes(self, db_session, now):
        template = await QuoteTemplateFactory.create(db_session)
        quote = await TemplateEngine(db_session).instantiate(template.id, now=now)
        service = QuoteTemplateService(db_session)

        await service.replace_template(
            template.id,
            QuoteTemplateCreate(
                name="Repriced",
                line_items=[LineItemInput(name="Premium charger", quantity=1, unit_price=9000)],
            ),
        )

        await db_session.refresh(quote)
        assert quote.subtotal == Decimal("1000.00")
        assert quote.line_items[0]["name"] == "7kW AC Wallbox"

    @pytest.mark.asyncio
    async def test_replace_keeps_usage_count(self, db_session):
        template = await QuoteTemplateFactory.create(db_session, usage_count=5)

        updated = await QuoteTemplateService(db_session).replace_template(
            template.id, QuoteTemplateCreate(name="Renamed")
        )

        assert updated.name == "Renamed"
        assert updated.usage_count == 5

    @pytest.mark.asyncio
    async def test_delete_detaches_quotes(self, db_session, now):
        template = await QuoteTemplateFactory.create(db_session)
        quote = await TemplateEngine(db_session).instantiate(template.id, now=now)

        assert await QuoteTemplateService(db_session).delete_template(template.id) is True

        reloaded = await QuoteDAO(db_session).get_by_id(quote.id)
        assert reloaded is not None
        assert reloaded.template_id is None

    @pytest.mark.asyncio
    async def test_get_unknown_template(self, db_session):
        with pytest.raises(TemplateNotFoundError):
            await QuoteTemplateService(db_session).get_template(999)

    @pytest.mark.asyncio
    async def test_seed_only_on_empty_table(self, db_session):
        service = QuoteTemplateService(db_session)

        assert await service.seed_default_templates() == len(DEFAULT_TEMPLATES)
        assert await service.seed_default_templates() == 0
        assert await service.count_templates() == len(DEFAULT_TEMPLATES)

    @pytest.mark.asyncio
    async def test_seeded_residential_package_prices(self, db_session):
        service = QuoteTemplateService(db_session)
        await service.seed_default_templates()

        templates = await service.list_templates(category="residential")
        totals = [Decimal(item["line_total"]) for item in templates[0].line_items]

        # 2400 x 1.30, 1500 x 1.50, 300 x 1.60
        assert totals == [Decimal("3120.00"), Decimal("2250.00"), Decimal("480.00")]
