"""
Unit tests for the quote DAOs.

WHAT: QuoteDAO search/expiry queries, QuoteTemplateDAO ordering and usage
counter, QuoteNumberSequenceDAO.

WHY: Search and expiry candidates are SQL; these tests run them against a
real (SQLite) database.
"""

from datetime import timedelta

import pytest

from quote_engine.core.exceptions import DuplicateQuoteNumberError
from quote_engine.dao.quote import QuoteDAO
from quote_engine.dao.quote_sequence import QuoteNumberSequenceDAO
from quote_engine.dao.quote_template import QuoteTemplateDAO
from quote_engine.models.quote import QuoteStatus
from tests.factories import QuoteFactory, QuoteTemplateFactory, line_item


class TestQuoteDAOSearch:
    """Tests for QuoteDAO.search."""

    @pytest.mark.asyncio
    async def test_filters_by_status(self, db_session):
        await QuoteFactory.create(db_session, status=QuoteStatus.DRAFT)
        sent = await QuoteFactory.create(db_session, status=QuoteStatus.SENT)

        items, total = await QuoteDAO(db_session).search(status=QuoteStatus.SENT)

        assert total == 1
        assert [q.id for q in items] == [sent.id]

    @pytest.mark.asyncio
    async def test_free_text_matches_client_company_case_insensitively(self, db_session):
        match = await QuoteFactory.create(
            db_session, client_info={"name": "Sam", "company": "Volt Fleet Services"}
        )
        await QuoteFactory.create(db_session, client_info={"name": "Alex"})

        items, total = await QuoteDAO(db_session).search(q="volt fleet")

        assert total == 1
        assert items[0].id == match.id

    @pytest.mark.asyncio
    async def test_free_text_matches_quote_number(self, db_session):
        match = await QuoteFactory.create(db_session, quote_number="QT2603-0042")
        await QuoteFactory.create(db_session, quote_number="QT2603-0043")

        items, _ = await QuoteDAO(db_session).search(q="0042")

        assert [q.id for q in items] == [match.id]

    @pytest.mark.asyncio
    async def test_sort_by_total_ascending(self, db_session):
        big = await QuoteFactory.create(db_session, line_items=[line_item(unit_price="5000")])
        small = await QuoteFactory.create(db_session, line_items=[line_item(unit_price="100")])

        items, _ = await QuoteDAO(db_session).search(sort_by="total", sort_order="asc")

        assert [q.id for q in items] == [small.id, big.id]

    @pytest.mark.asyncio
    async def test_sort_by_client_uses_company_when_name_missing(self, db_session):
        zed = await QuoteFactory.create(db_session, client_info={"name": "Zed"})
        acme = await QuoteFactory.create(db_session, client_info={"name": "", "company": "Acme"})

        items, _ = await QuoteDAO(db_session).search(sort_by="client", sort_order="asc")

        assert [q.id for q in items] == [acme.id, zed.id]

    @pytest.mark.asyncio
    async def test_pagination_reports_full_total(self, db_session):
        for _ in range(5):
            await QuoteFactory.create(db_session)

        items, total = await QuoteDAO(db_session).search(skip=2, limit=2)

        assert total == 5
        assert len(items) == 2


class TestQuoteDAOExpiry:
    """Tests for expiry candidates."""

    @pytest.mark.asyncio
    async def test_only_open_quotes_past_validity(self, db_session, now):
        due = await QuoteFactory.create(
            db_session, status=QuoteStatus.SENT, created_at=now - timedelta(days=40),
            valid_until=now - timedelta(days=10),
        )
        await QuoteFactory.create(
            db_session, status=QuoteStatus.ACCEPTED, created_at=now - timedelta(days=40),
            valid_until=now - timedelta(days=10),
        )
        await QuoteFactory.create(db_session, status=QuoteStatus.SENT, created_at=now)

        candidates = await QuoteDAO(db_session).get_due_for_expiry(now)

        assert [q.id for q in candidates] == [due.id]

    @pytest.mark.asyncio
    async def test_number_exists(self, db_session):
        await QuoteFactory.create(db_session, quote_number="IMPORT-1")
        dao = QuoteDAO(db_session)

        assert await dao.number_exists("IMPORT-1") is True
        assert await dao.number_exists("IMPORT-2") is False

    @pytest.mark.asyncio
    async def test_create_with_taken_number_raises_duplicate_error(self, db_session, now):
        await QuoteFactory.create(db_session, quote_number="QT2603-0001")

        with pytest.raises(DuplicateQuoteNumberError) as exc_info:
            await QuoteDAO(db_session).create(
                quote_number="QT2603-0001",
                title="Racing insert",
                valid_until=now + timedelta(days=30),
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.context["quote_number"] == "QT2603-0001"


class TestQuoteTemplateDAO:
    """Tests for QuoteTemplateDAO."""

    @pytest.mark.asyncio
    async def test_defaults_first_then_most_used(self, db_session):
        rarely = await QuoteTemplateFactory.create(db_session, name="Rare", usage_count=1)
        popular = await QuoteTemplateFactory.create(db_session, name="Popular", usage_count=9)
        stock = await QuoteTemplateFactory.create(db_session, name="Stock", is_default=True)

        templates = await QuoteTemplateDAO(db_session).list_templates()

        assert [t.id for t in templates] == [stock.id, popular.id, rarely.id]

    @pytest.mark.asyncio
    async def test_filter_by_category(self, db_session):
        await QuoteTemplateFactory.create(db_session, name="Home", category="residential")
        fleet = await QuoteTemplateFactory.create(db_session, name="Fleet", category="commercial")

        templates = await QuoteTemplateDAO(db_session).list_templates(category="commercial")

        assert [t.id for t in templates] == [fleet.id]

    @pytest.mark.asyncio
    async def test_increment_usage(self, db_session):
        template = await QuoteTemplateFactory.create(db_session, usage_count=2)
        dao = QuoteTemplateDAO(db_session)

        assert await dao.increment_usage(template.id) == 3
        assert await dao.increment_usage(template.id) == 4
        assert template.usage_count == 4

    @pytest.mark.asyncio
    async def test_increment_usage_unknown_template(self, db_session):
        assert await QuoteTemplateDAO(db_session).increment_usage(9999) is None


class TestQuoteNumberSequenceDAO:
    """Tests for the per-period counter."""

    @pytest.mark.asyncio
    async def test_values_increase_per_period(self, db_session):
        dao = QuoteNumberSequenceDAO(db_session)

        assert await dao.next_value("2603") == 1
        assert await dao.next_value("2603") == 2
        assert await dao.next_value("2604") == 1
        assert await dao.next_value("2603") == 3
