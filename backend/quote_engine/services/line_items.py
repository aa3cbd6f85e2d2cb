"""
Line item helpers shared by the quote service and template engine.

WHY: Line items live in a JSON column. These helpers are the single place
that converts between stored dicts and LineItem models, assigns line ids
and re-prices items, so every write path stores the same shape.
"""

import copy
import math
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

from quote_engine.core.exceptions import ValidationError
from quote_engine.schemas.quote import (
    CatalogProduct,
    ChargerSelection,
    LineItem,
    LineItemInput,
    LineItemType,
    ProductRef,
)
from quote_engine.services.pricing import default_markup, price_line_item


def new_line_id() -> str:
    return uuid.uuid4().hex


def load_line_items(raw: Optional[Iterable[Dict[str, Any]]]) -> List[LineItem]:
    """Parse stored line item dicts, preserving order."""
    return [LineItem.model_validate(item) for item in (raw or [])]


def dump_line_items(items: Iterable[LineItem]) -> List[Dict[str, Any]]:
    """Serialize line items for the JSON column (Decimals as strings)."""
    return [item.model_dump(mode="json") for item in items]


def materialize(
    inputs: Iterable[LineItemInput],
    allowed_ids: Optional[Set[str]] = None,
) -> List[LineItem]:
    """
    Turn caller input into priced line items.

    Args:
        inputs: Line items as supplied by the caller
        allowed_ids: Ids that may be kept (existing ids of the quote on a
            full replace); any other id is replaced with a fresh one

    Returns:
        Priced line items in input order

    Raises:
        ValidationError: If the same id appears twice
    """
    allowed_ids = allowed_ids or set()
    seen: Set[str] = set()
    items: List[LineItem] = []
    for item_input in inputs:
        data = item_input.model_dump()
        line_id = data.pop("id", None)
        if not line_id or line_id not in allowed_ids:
            line_id = new_line_id()
        if line_id in seen:
            raise ValidationError(
                "Duplicate line item id in request",
                line_item_id=line_id,
            )
        seen.add(line_id)
        items.append(price_line_item(LineItem(id=line_id, **data)))
    return items


def copy_line_items(items: Iterable[LineItem]) -> List[LineItem]:
    """
    Deep-copy line items with fresh ids.

    WHY: Duplicates and template instances must share no objects (or ids)
    with their source, so editing one never affects the other.
    """
    copies = []
    for item in items:
        data = copy.deepcopy(item.model_dump())
        data["id"] = new_line_id()
        copies.append(price_line_item(LineItem.model_validate(data)))
    return copies


def line_item_from_product(product: CatalogProduct) -> LineItem:
    """Build a priced line item from a catalog record."""
    markup = product.markup_percent
    if markup is None:
        markup = default_markup(product.type)

    item = LineItem(
        id=new_line_id(),
        name=product.name,
        description=product.description,
        type=product.type,
        category=product.category,
        quantity=product.quantity,
        unit=product.unit,
        unit_price=product.unit_price,
        markup_percent=markup,
        cost=product.cost,
        product_ref=ProductRef(
            product_id=product.product_id,
            sku=product.sku,
            name=product.name,
            supplier_name=product.supplier_name,
            part_number=product.part_number,
        ),
        specifications=copy.deepcopy(product.specifications),
    )
    return price_line_item(item)


# Pricing for lines generated from a project's charger selection
CHARGER_BASE_PRICE = Decimal("8000")
CHARGER_22KW_PRICE = Decimal("12000")
CHARGER_DC_FAST_PRICE = Decimal("45000")
CHARGER_COST_RATIO = Decimal("0.7")
INSTALLATION_PRICE = Decimal("2500")
INSTALLATION_COST = Decimal("1500")
CANOPY_PRICE = Decimal("3500")
CANOPY_COST = Decimal("2200")
CHARGERS_PER_CANOPY = 2


def _charger_unit_price(selection: ChargerSelection) -> Decimal:
    if selection.charging_type.lower() == "dc-fast":
        return CHARGER_DC_FAST_PRICE
    if selection.power_rating.lower() == "22kw":
        return CHARGER_22KW_PRICE
    return CHARGER_BASE_PRICE


def line_items_from_charger_selection(selection: ChargerSelection) -> List[LineItemInput]:
    """
    Build line items for a project's charger selection.

    One charger line and one installation per charger; outdoor sites that
    need weather protection get one canopy per two chargers. Markups are
    the standard markups for each line type.
    """
    quantity = Decimal(selection.number_of_chargers)
    unit_price = _charger_unit_price(selection)
    connectors = ", ".join(selection.connector_types) or "standard"

    items = [
        LineItemInput(
            type=LineItemType.CHARGER,
            name=f"{selection.power_rating} {selection.charging_type.replace('-', ' ', 1).upper()} Charger",
            description=f"{selection.power_rating} charging station with {connectors} connectors",
            category="chargers",
            quantity=quantity,
            unit_price=unit_price,
            cost=unit_price * CHARGER_COST_RATIO,
            markup_percent=default_markup(LineItemType.CHARGER),
            specifications={
                "power_rating": selection.power_rating,
                "charging_type": selection.charging_type,
                "mounting_type": selection.mounting_type,
                "connector_types": list(selection.connector_types),
                "weather_protection": selection.weather_protection,
                "network_connectivity": selection.network_connectivity,
            },
        ),
        LineItemInput(
            type=LineItemType.INSTALLATION,
            name="Professional Installation",
            description="Complete installation including electrical work, mounting, and commissioning",
            category="installation",
            quantity=quantity,
            unit_price=INSTALLATION_PRICE,
            cost=INSTALLATION_COST,
            markup_percent=default_markup(LineItemType.INSTALLATION),
        ),
    ]

    if selection.weather_protection:
        canopies = math.ceil(selection.number_of_chargers / CHARGERS_PER_CANOPY)
        items.append(
            LineItemInput(
                type=LineItemType.ACCESSORY,
                name="Weather Protection Canopy",
                description="Protective canopy for outdoor installation",
                category="accessories",
                quantity=Decimal(canopies),
                unit_price=CANOPY_PRICE,
                cost=CANOPY_COST,
                markup_percent=default_markup(LineItemType.ACCESSORY),
            )
        )
    return items
