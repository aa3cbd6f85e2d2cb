"""
Unit tests for quote numbering.
"""

from datetime import datetime

import pytest

from quote_engine.services.numbering import QuoteNumberGenerator, format_quote_number, period_key
from tests.factories import QuoteFactory


class TestFormatting:
    def test_period_key(self):
        assert period_key(datetime(2026, 10, 3)) == "2610"

    def test_format_pads_to_four_digits(self):
        assert format_quote_number("QT", "2610", 7) == "QT2610-0007"

    def test_format_widens_past_9999(self):
        assert format_quote_number("QT", "2610", 12345) == "QT2610-12345"


class TestQuoteNumberGenerator:
    @pytest.mark.asyncio
    async def test_numbers_are_unique_and_sequential(self, db_session):
        generator = QuoteNumberGenerator(db_session, prefix="QT")
        now = datetime(2026, 10, 17)

        numbers = [await generator.next(now) for _ in range(25)]

        assert len(set(numbers)) == 25
        assert numbers[0] == "QT2610-0001"
        assert numbers[-1] == "QT2610-0025"

    @pytest.mark.asyncio
    async def test_sequence_restarts_each_month(self, db_session):
        generator = QuoteNumberGenerator(db_session, prefix="QT")

        await generator.next(datetime(2026, 10, 31))
        november = await generator.next(datetime(2026, 11, 1))

        assert november == "QT2611-0001"

    @pytest.mark.asyncio
    async def test_prefix_defaults_to_setting(self, db_session, monkeypatch):
        from quote_engine.core.config import settings

        monkeypatch.setattr(settings, "QUOTE_NUMBER_PREFIX", "CS")

        number = await QuoteNumberGenerator(db_session).next(datetime(2026, 1, 5))

        assert number == "CS2601-0001"

    @pytest.mark.asyncio
    async def test_skips_numbers_held_by_imported_quotes(self, db_session):
        await QuoteFactory.create(db_session, quote_number="QT2610-0001")
        await QuoteFactory.create(db_session, quote_number="QT2610-0002")
        generator = QuoteNumberGenerator(db_session, prefix="QT")

        number = await generator.next(datetime(2026, 10, 17))

        assert number == "QT2610-0003"
