"""
Unit tests for line item helpers.

WHAT: Catalog products and charger selections turned into line items.
"""

from decimal import Decimal

from quote_engine.schemas.quote import CatalogProduct, ChargerSelection, LineItemType
from quote_engine.services.line_items import (
    line_item_from_product,
    line_items_from_charger_selection,
)


class TestChargerSelection:
    def test_ac_selection_with_weather_protection(self):
        items = line_items_from_charger_selection(
            ChargerSelection(
                charging_type="ac-level2",
                power_rating="22kw",
                number_of_chargers=3,
                connector_types=["Type 2"],
                weather_protection=True,
            )
        )

        charger, installation, canopy = items
        assert charger.type == LineItemType.CHARGER
        assert charger.name == "22kw AC LEVEL2 Charger"
        assert charger.description == "22kw charging station with Type 2 connectors"
        assert charger.quantity == Decimal("3")
        assert charger.unit_price == Decimal("12000")
        assert charger.cost == Decimal("8400")
        assert charger.markup_percent == Decimal("30")
        assert charger.specifications["power_rating"] == "22kw"
        assert installation.type == LineItemType.INSTALLATION
        assert installation.quantity == Decimal("3")
        assert installation.markup_percent == Decimal("50")
        # one canopy per two chargers, rounded up
        assert canopy.quantity == Decimal("2")
        assert canopy.markup_percent == Decimal("40")

    def test_dc_fast_without_weather_protection(self):
        items = line_items_from_charger_selection(
            ChargerSelection(charging_type="dc-fast", power_rating="50kw", number_of_chargers=1)
        )

        assert [item.type for item in items] == [LineItemType.CHARGER, LineItemType.INSTALLATION]
        assert items[0].unit_price == Decimal("45000")
        assert "standard connectors" in items[0].description

    def test_other_ratings_use_base_price(self):
        items = line_items_from_charger_selection(
            ChargerSelection(charging_type="ac-level2", power_rating="7kw", number_of_chargers=1)
        )

        assert items[0].unit_price == Decimal("8000")


class TestCatalogProduct:
    def test_default_markup_for_type(self):
        item = line_item_from_product(
            CatalogProduct(sku="AC-7", name="7kW Wallbox", unit_price=Decimal("1000"))
        )

        assert item.markup_percent == Decimal("30")
        assert item.line_total == Decimal("1300.00")
        assert item.product_ref.sku == "AC-7"
