"""
Stock quote templates shipped with the portal.

Seeded into an empty template table on startup (SEED_DEFAULT_TEMPLATES).
"""

from decimal import Decimal
from typing import List

from quote_engine.schemas.quote import LineItemInput, LineItemType, QuoteSettings
from quote_engine.schemas.quote_template import QuoteTemplateCreate

SYSTEM_USER = "system"

DEFAULT_TEMPLATES: List[QuoteTemplateCreate] = [
    QuoteTemplateCreate(
        name="Residential AC Charging Package",
        description="Standard package for residential single or dual AC charger installation",
        category="residential",
        is_default=True,
        line_items=[
            LineItemInput(
                type=LineItemType.CHARGER,
                name="7kW AC Charging Station",
                description="Wall-mounted AC charging station with Type 2 connector",
                category="chargers",
                quantity=Decimal("1"),
                unit_price=Decimal("2400"),
                cost=Decimal("1680"),
                markup_percent=Decimal("30"),
            ),
            LineItemInput(
                type=LineItemType.INSTALLATION,
                name="Standard Installation",
                description="Professional installation including electrical work and commissioning",
                category="installation",
                quantity=Decimal("1"),
                unit_price=Decimal("1500"),
                cost=Decimal("900"),
                markup_percent=Decimal("50"),
            ),
            LineItemInput(
                type=LineItemType.SERVICE,
                name="Annual Maintenance",
                description="12-month maintenance and support package",
                category="service",
                quantity=Decimal("1"),
                unit_price=Decimal("300"),
                cost=Decimal("120"),
                markup_percent=Decimal("60"),
                is_optional=True,
            ),
        ],
        settings=QuoteSettings(
            validity_days=30,
            terms="Payment is due within 30 days of invoice date.",
            notes="Installation includes all necessary electrical work and permits.",
            payment_terms="30 days net",
            warranty="24 months parts and labour warranty",
            delivery_terms="Standard delivery 5-10 business days",
        ),
    ),
    QuoteTemplateCreate(
        name="Commercial DC Fast Charging Hub",
        description="Complete commercial DC fast charging solution with multiple units",
        category="commercial",
        is_default=True,
        line_items=[
            LineItemInput(
                type=LineItemType.CHARGER,
                name="50kW DC Fast Charging Station",
                description="Commercial DC fast charger with CCS2 and CHAdeMO connectors",
                category="chargers",
                quantity=Decimal("4"),
                unit_price=Decimal("65000"),
                cost=Decimal("45500"),
                markup_percent=Decimal("25"),
            ),
            LineItemInput(
                type=LineItemType.INSTALLATION,
                name="Commercial Installation Package",
                description=(
                    "Complete installation including site preparation, electrical work, "
                    "and commissioning"
                ),
                category="installation",
                quantity=Decimal("1"),
                unit_price=Decimal("45000"),
                cost=Decimal("27000"),
                markup_percent=Decimal("40"),
            ),
            LineItemInput(
                type=LineItemType.ACCESSORY,
                name="Weather Protection Canopy",
                description="Protective canopy structure for outdoor installation",
                category="accessories",
                quantity=Decimal("2"),
                unit_price=Decimal("8500"),
                cost=Decimal("5950"),
                markup_percent=Decimal("35"),
            ),
            LineItemInput(
                type=LineItemType.SERVICE,
                name="Premium Maintenance Package",
                description="24/7 monitoring and maintenance for 24 months",
                category="service",
                quantity=Decimal("1"),
                unit_price=Decimal("12000"),
                cost=Decimal("4800"),
                markup_percent=Decimal("60"),
            ),
        ],
        settings=QuoteSettings(
            validity_days=60,
            terms="Payment terms: 30% deposit, 40% on delivery, 30% on completion.",
            notes=(
                "Project includes all necessary permits, grid connection coordination, "
                "and compliance certifications."
            ),
            payment_terms="Staged payments as per contract",
            warranty="36 months comprehensive warranty with 24/7 support",
            delivery_terms="8-12 weeks from order confirmation",
        ),
    ),
]
