"""
Pricing calculator for quotes.

WHAT: Pure functions that derive line totals and quote totals from line
items, a tax rate, a quote-level discount and volume discount tiers.

WHY: Totals are never typed in by hand. Every line item mutation, tax
change or discount change runs through price_quote()/recompute() so that
``total = subtotal - discount + tax`` and ``subtotal = sum(line totals)``
always hold for a stored quote.

HOW:
- All arithmetic in Decimal, rounded half-up to 2 places (cents)
- Volume tiers: lines matching a tier's categories pool their quantity;
  each line gets the highest tier it qualifies for off its unit price
- line_total = round2(quantity * unit_price * (1 - volume%) * (1 + markup%) * (1 - discount%))
- Quote discount (percentage or fixed) clamped into [0, subtotal]
- tax = round2((subtotal - discount) * tax_rate%)
- A negative or non-finite total raises ComputationFault carrying the
  clamped totals; the caller rejects the mutation
"""

import logging
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from quote_engine.core.config import settings
from quote_engine.core.exceptions import ComputationFault
from quote_engine.models.quote import DiscountType
from quote_engine.schemas.quote import LineItem, LineItemType, QuoteSettings, VolumeDiscount

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Standard markup applied to catalog products, by line item type
DEFAULT_MARKUPS: Dict[LineItemType, Decimal] = {
    LineItemType.CHARGER: Decimal("30"),
    LineItemType.ACCESSORY: Decimal("40"),
    LineItemType.INSTALLATION: Decimal("50"),
    LineItemType.SERVICE: Decimal("60"),
    LineItemType.CUSTOM: Decimal("35"),
}


@dataclass(frozen=True)
class QuoteTotals:
    """Derived totals of a quote."""

    subtotal: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_ex_tax: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_currency(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def default_markup(item_type: LineItemType) -> Decimal:
    """Standard markup percent for a catalog product of the given type."""
    return DEFAULT_MARKUPS.get(item_type, DEFAULT_MARKUPS[LineItemType.CUSTOM])


def calculate_line_total(
    quantity: Decimal,
    unit_price: Decimal,
    markup_percent: Decimal = ZERO,
    discount_percent: Decimal = ZERO,
    volume_discount_percent: Decimal = ZERO,
) -> Decimal:
    """
    Calculate a line total.

    Args:
        quantity: Quantity (positive)
        unit_price: Unit price before markup (negative for credit lines)
        markup_percent: Markup applied on top of the unit price
        discount_percent: Line discount applied after markup
        volume_discount_percent: Volume tier discount taken off the unit price

    Returns:
        Line total rounded to cents
    """
    unit = Decimal(unit_price) * (1 - Decimal(volume_discount_percent) / HUNDRED)
    gross = Decimal(quantity) * unit * (1 + Decimal(markup_percent) / HUNDRED)
    net = gross * (1 - Decimal(discount_percent) / HUNDRED)
    return round_currency(net)


def sell_unit_price(item: Any) -> Decimal:
    """Unit price including volume discount and markup, as shown to the client."""
    volume = Decimal(getattr(item, "volume_discount_percent", ZERO) or ZERO)
    return round_currency(
        Decimal(item.unit_price)
        * (1 - volume / HUNDRED)
        * (1 + Decimal(item.markup_percent) / HUNDRED)
    )


def price_line_item(item: LineItem) -> LineItem:
    """Return a copy of the line item with line_total re-derived."""
    _ensure_finite(item)
    return item.model_copy(
        update={
            "line_total": calculate_line_total(
                item.quantity,
                item.unit_price,
                item.markup_percent,
                item.discount_percent,
                item.volume_discount_percent,
            )
        }
    )


# ============================================================================
# Volume discounts
# ============================================================================


def volume_discounts_for(quote_settings: Optional[Any] = None) -> List[VolumeDiscount]:
    """
    Volume tiers that apply to a quote.

    Args:
        quote_settings: QuoteSettings (or its stored dict); tiers set there
            win over the configured VOLUME_DISCOUNTS, an empty list disables them

    Returns:
        Validated tiers
    """
    if quote_settings is not None and not isinstance(quote_settings, QuoteSettings):
        quote_settings = QuoteSettings.model_validate(quote_settings)
    tiers = quote_settings.volume_discounts if quote_settings is not None else None
    if tiers is None:
        tiers = [VolumeDiscount.model_validate(tier) for tier in settings.VOLUME_DISCOUNTS]
    return list(tiers)


def _category_keys(item: Any) -> set:
    keys = {LineItemType(item.type).value}
    category = getattr(item, "category", None)
    if category:
        keys.add(category.strip().lower())
    return keys


def volume_discount_percents(
    line_items: Sequence[Any],
    tiers: Iterable[VolumeDiscount],
) -> List[Decimal]:
    """
    Volume discount percent for each line, in line order.

    Each tier pools the quantity of every line whose type or category is
    one of its applicable_categories; a line takes the highest percentage
    among the tiers it matches whose pooled quantity reaches minimum_quantity.
    """
    tiers = list(tiers or [])
    percents = [ZERO] * len(line_items)
    if not tiers:
        return percents

    line_keys = [_category_keys(item) for item in line_items]
    for tier in tiers:
        categories = {category.strip().lower() for category in tier.applicable_categories}
        matching = [index for index, keys in enumerate(line_keys) if keys & categories]
        pooled = sum((Decimal(line_items[index].quantity) for index in matching), Decimal("0"))
        if pooled < Decimal(tier.minimum_quantity):
            continue
        percentage = Decimal(tier.discount_percentage)
        for index in matching:
            if percentage > percents[index]:
                percents[index] = percentage
    return percents


def apply_volume_discounts(
    line_items: Sequence[LineItem],
    tiers: Iterable[VolumeDiscount],
) -> List[LineItem]:
    """Return copies of the line items with volume discounts and line totals re-derived."""
    percents = volume_discount_percents(line_items, tiers)
    return [
        price_line_item(item.model_copy(update={"volume_discount_percent": percent}))
        for item, percent in zip(line_items, percents)
    ]


# ============================================================================
# Quote totals
# ============================================================================


def zero_totals(
    tax_rate: Decimal,
    discount_type: DiscountType = DiscountType.PERCENTAGE,
    discount_value: Decimal = ZERO,
) -> QuoteTotals:
    """Totals of an empty quote (also the clamped value on a fault)."""
    return QuoteTotals(
        subtotal=ZERO,
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        discount_amount=ZERO,
        tax_rate=Decimal(tax_rate),
        tax_amount=ZERO,
        total_ex_tax=ZERO,
        total=ZERO,
    )


def _ensure_finite(item: Any) -> None:
    for field in ("quantity", "unit_price", "markup_percent", "discount_percent"):
        value = Decimal(getattr(item, field))
        if not value.is_finite():
            raise ComputationFault(
                f"Line item '{getattr(item, 'name', '?')}' has a non-finite {field}",
                line_item_id=getattr(item, "id", None),
                field=field,
            )


def recompute(
    line_items: Iterable[Any],
    tax_rate: Decimal,
    discount_type: DiscountType = DiscountType.PERCENTAGE,
    discount_value: Optional[Decimal] = None,
    volume_discounts: Optional[Iterable[VolumeDiscount]] = None,
) -> QuoteTotals:
    """
    Derive quote totals from line items.

    Line totals are recalculated from quantity, unit price, volume tier,
    markup and discount; any line_total already on the items is ignored.

    Args:
        line_items: Items exposing quantity, unit_price, markup_percent, discount_percent
        tax_rate: Tax (GST) rate in percent
        discount_type: percentage or fixed
        discount_value: Percent or amount, depending on discount_type
        volume_discounts: Volume tiers (none when omitted)

    Returns:
        QuoteTotals

    Raises:
        ComputationFault: If the total would be negative or non-finite
    """
    line_items = list(line_items)
    tax_rate = Decimal(tax_rate)
    discount_value = Decimal(discount_value if discount_value is not None else ZERO)
    discount_type = DiscountType(discount_type)

    if not tax_rate.is_finite() or not discount_value.is_finite():
        clamped = zero_totals(tax_rate if tax_rate.is_finite() else ZERO, discount_type)
        logger.warning("Non-finite tax rate or discount supplied; totals clamped to zero")
        raise ComputationFault(
            "Tax rate and discount must be finite numbers",
            totals=clamped.to_dict(),
        )

    subtotal = ZERO
    for item, volume_percent in zip(line_items, volume_discount_percents(line_items, volume_discounts or [])):
        _ensure_finite(item)
        subtotal += calculate_line_total(
            item.quantity,
            item.unit_price,
            item.markup_percent,
            item.discount_percent,
            volume_percent,
        )

    if discount_type == DiscountType.PERCENTAGE:
        requested_discount = round_currency(subtotal * discount_value / HUNDRED)
    else:
        requested_discount = round_currency(discount_value)

    discount_amount = min(max(requested_discount, ZERO), max(subtotal, ZERO))
    if discount_amount != requested_discount:
        logger.warning(
            f"Discount {requested_discount} clamped to {discount_amount} (subtotal {subtotal})"
        )

    total_ex_tax = subtotal - discount_amount
    tax_amount = round_currency(total_ex_tax * tax_rate / HUNDRED)
    total = total_ex_tax + tax_amount

    if total < ZERO:
        clamped = zero_totals(tax_rate, discount_type, discount_value)
        logger.warning(f"Quote total {total} is negative; rejecting mutation")
        raise ComputationFault(
            "Quote total cannot be negative",
            computed_total=total,
            totals=clamped.to_dict(),
        )

    return QuoteTotals(
        subtotal=subtotal,
        discount_type=discount_type,
        discount_value=discount_value,
        discount_amount=discount_amount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total_ex_tax=total_ex_tax,
        total=total,
    )


def price_quote(
    line_items: Sequence[LineItem],
    tax_rate: Decimal,
    discount_type: DiscountType = DiscountType.PERCENTAGE,
    discount_value: Optional[Decimal] = None,
    quote_settings: Optional[Any] = None,
) -> Tuple[List[LineItem], QuoteTotals]:
    """
    Re-price a quote's line items and derive its totals.

    The write paths store both results, so the stored line totals always
    sum to the stored subtotal.

    Args:
        line_items: Line items in quote order
        tax_rate: Tax (GST) rate in percent
        discount_type: percentage or fixed
        discount_value: Percent or amount, depending on discount_type
        quote_settings: Quote settings carrying volume tiers (configured tiers when None)

    Returns:
        (priced line items, totals)
    """
    tiers = volume_discounts_for(quote_settings)
    priced = apply_volume_discounts(line_items, tiers)
    totals = recompute(priced, tax_rate, discount_type, discount_value, tiers)
    return priced, totals
