"""
Unit tests for quote PDF rendering.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from quote_engine.core.exceptions import ExportError
from quote_engine.models.quote import QuoteStatus
from quote_engine.services.pdf_service import (
    CompanyInfo,
    QuotePDFService,
    format_currency,
    format_date,
    format_quantity,
)
from tests.factories import QuoteFactory, line_item


class TestFormatting:
    def test_format_currency(self):
        assert format_currency(Decimal("1234.5")) == "$1,234.50"
        assert format_currency(Decimal("-50")) == "-$50.00"
        assert format_currency(None) == "$0.00"

    def test_format_date(self):
        assert format_date(datetime(2026, 1, 5, 10, 0)) == "5 January 2026"
        assert format_date(date(2026, 12, 25)) == "25 December 2026"
        assert format_date(None) == ""

    def test_format_quantity(self):
        assert format_quantity(Decimal("2.000")) == "2"
        assert format_quantity(Decimal("2.50")) == "2.5"


class TestQuotePDFService:
    """Tests for generate_quote_pdf."""

    @pytest.fixture
    def service(self):
        return QuotePDFService(
            CompanyInfo(name="Spark & Co", address="1 Main St", phone="02 0000 0000", abn="12 345 678 901")
        )

    @pytest.mark.asyncio
    async def test_renders_pdf(self, db_session, service, sample_client_info):
        quote = await QuoteFactory.create(
            db_session,
            line_items=[
                line_item(name="Wallbox <7kW>", quantity="2", unit_price="1200", markup_percent="30"),
                line_item(name="Maintenance", is_optional=True, description="12 months"),
            ],
            client_info=sample_client_info,
            project_data={"site_address": "5 Site Rd", "estimated_install_date": "2026-04-01"},
            settings={"validity_days": 30, "payment_terms": "30 days net", "warranty": "24 months"},
        )

        pdf = service.generate_quote_pdf(quote)

        assert pdf.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_terminal_quote_renders_without_acceptance_block(self, db_session, service):
        quote = await QuoteFactory.create(db_session, status=QuoteStatus.ACCEPTED, line_items=[])

        with patch.object(service, "_build_acceptance") as build_acceptance:
            pdf = service.generate_quote_pdf(quote)

        build_acceptance.assert_not_called()
        assert pdf.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_build_failure_raises_export_error(self, db_session, service):
        quote = await QuoteFactory.create(db_session)

        with patch(
            "quote_engine.services.pdf_service.SimpleDocTemplate.build",
            side_effect=ValueError("layout error"),
        ):
            with pytest.raises(ExportError) as exc_info:
                service.generate_quote_pdf(quote)

        assert exc_info.value.context["quote_id"] == quote.id
