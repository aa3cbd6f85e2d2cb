"""
Integration tests for the Analytics API.

WHAT: Tests for GET /api/analytics/quotes.

WHY: Analytics are computed on demand from the quote repository; the
endpoint must see lazily expired quotes and report a ratio conversion rate.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.models.base import utcnow
from quote_engine.models.quote import QuoteStatus
from tests.factories import QuoteFactory, line_item

URL = "/api/analytics/quotes"


class TestQuoteAnalytics:
    """Integration tests for quote analytics."""

    @pytest.mark.asyncio
    async def test_empty(self, client: AsyncClient):
        response = await client.get(URL)

        assert response.status_code == 200
        data = response.json()
        assert data["total_quotes"] == 0
        assert Decimal(data["conversion_rate"]) == Decimal("0")
        assert data["top_products"] == []

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient, db_session: AsyncSession):
        now = utcnow()
        await QuoteFactory.create(
            db_session,
            status=QuoteStatus.ACCEPTED,
            line_items=[line_item(unit_price="1000", product_ref={"sku": "WB-7", "name": "Wallbox"})],
        )
        await QuoteFactory.create(db_session, status=QuoteStatus.SENT)
        await QuoteFactory.create(
            db_session,
            status=QuoteStatus.SENT,
            created_at=now - timedelta(days=40),
            valid_until=now - timedelta(days=2),
        )
        await QuoteFactory.create(db_session, status=QuoteStatus.DRAFT)

        response = await client.get(URL, params={"top_products": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["total_quotes"] == 4
        assert Decimal(data["total_value"]) == Decimal("4400")
        assert Decimal(data["accepted_value"]) == Decimal("1100")
        assert Decimal(data["conversion_rate"]) == Decimal("0.25")
        assert data["status_breakdown"]["expired"] == 1
        assert data["status_breakdown"]["sent"] == 1
        assert [p["sku"] for p in data["top_products"]] == ["WB-7"]

    @pytest.mark.asyncio
    async def test_top_products_bounds(self, client: AsyncClient):
        response = await client.get(URL, params={"top_products": 0})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_reads_do_not_expire_stored_quotes(self, client: AsyncClient, db_session: AsyncSession):
        now = utcnow()
        overdue = await QuoteFactory.create(
            db_session,
            status=QuoteStatus.DRAFT,
            created_at=now - timedelta(days=40),
            valid_until=now - timedelta(days=1),
        )

        response = await client.get(URL)

        assert response.status_code == 200
        assert response.json()["status_breakdown"]["expired"] == 1
        await db_session.refresh(overdue)
        assert overdue.status == QuoteStatus.DRAFT
        assert overdue.expired_at is None
