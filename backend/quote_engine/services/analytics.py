"""
Quote analytics aggregator.

WHAT: Portfolio metrics over a snapshot of quotes: totals, conversion,
status breakdown, monthly trends, top products, response time.

WHY: Contractors track how much is quoted, how much converts and how fast
clients respond. The aggregation is a pure function of the quotes passed
in, so it can be tested without a database and never writes anything.

HOW:
- Statuses are read through lifecycle.effective_status(), so an overdue
  quote counts as expired even if no read has expired it yet
- total_value sums every quote regardless of status; accepted_value and
  open_pipeline_value are reported separately
- conversion_rate = accepted / total_quotes as a ratio in [0, 1]
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from quote_engine.models.base import utcnow
from quote_engine.models.quote import Quote, QuoteStatus
from quote_engine.schemas.analytics import MonthlyTrend, QuoteAnalytics, TopProduct
from quote_engine.services.lifecycle import OPEN_STATES, effective_status
from quote_engine.services.line_items import load_line_items
from quote_engine.services.pricing import ZERO, round_currency

TOP_PRODUCTS_LIMIT = 10
RATIO_PLACES = Decimal("0.0001")
HOURS_PLACES = Decimal("0.01")


def _money(value: Optional[Decimal]) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def analyze(
    quotes: Iterable[Quote],
    now: Optional[datetime] = None,
    top_products_limit: int = TOP_PRODUCTS_LIMIT,
) -> QuoteAnalytics:
    """
    Compute portfolio metrics.

    Args:
        quotes: Quotes to aggregate (deleted quotes are never in the repository)
        now: Clock reading used for lazy expiry
        top_products_limit: Number of products to rank

    Returns:
        QuoteAnalytics; all zeros for an empty input
    """
    now = now or utcnow()
    quotes = list(quotes)

    status_breakdown: Dict[str, int] = {status.value: 0 for status in QuoteStatus}
    monthly: Dict[str, MonthlyTrend] = {}
    products: Dict[str, TopProduct] = {}

    total_value = ZERO
    accepted_value = ZERO
    open_pipeline_value = ZERO
    accepted_count = 0
    response_hours: List[Decimal] = []

    for quote in quotes:
        status = effective_status(quote, now)
        value = _money(quote.total)
        accepted = status == QuoteStatus.ACCEPTED

        status_breakdown[status.value] += 1
        total_value += value
        if accepted:
            accepted_count += 1
            accepted_value += value
        elif status in OPEN_STATES:
            open_pipeline_value += value

        decided_at = quote.accepted_at or quote.rejected_at
        if quote.sent_at and decided_at and decided_at >= quote.sent_at:
            seconds = Decimal(str((decided_at - quote.sent_at).total_seconds()))
            response_hours.append(seconds / Decimal("3600"))

        month = quote.created_at.strftime("%Y-%m")
        trend = monthly.setdefault(month, MonthlyTrend(month=month))
        trend.quotes += 1
        trend.value += value
        if accepted:
            trend.accepted += 1
            trend.accepted_value += value

        seen_in_quote = set()
        for item in load_line_items(quote.line_items):
            if item.product_ref is None:
                continue
            sku = item.product_ref.sku
            product = products.setdefault(
                sku,
                TopProduct(sku=sku, name=item.product_ref.name or item.name),
            )
            product.quoted_quantity += item.quantity
            product.quoted_value += item.line_total
            if sku not in seen_in_quote:
                seen_in_quote.add(sku)
                product.quote_count += 1
                if accepted:
                    product.accepted_count += 1

    total_quotes = len(quotes)
    if total_quotes:
        conversion_rate = (Decimal(accepted_count) / Decimal(total_quotes)).quantize(
            RATIO_PLACES, rounding=ROUND_HALF_UP
        )
        average_quote_value = round_currency(total_value / total_quotes)
    else:
        conversion_rate = Decimal("0")
        average_quote_value = ZERO

    average_response_hours = None
    if response_hours:
        average_response_hours = (sum(response_hours) / len(response_hours)).quantize(
            HOURS_PLACES, rounding=ROUND_HALF_UP
        )

    top_products = sorted(
        products.values(),
        key=lambda product: (-product.quoted_value, product.sku),
    )[:top_products_limit]

    return QuoteAnalytics(
        total_quotes=total_quotes,
        total_value=total_value,
        accepted_value=accepted_value,
        open_pipeline_value=open_pipeline_value,
        conversion_rate=conversion_rate,
        average_quote_value=average_quote_value,
        average_response_hours=average_response_hours,
        status_breakdown=status_breakdown,
        monthly_trends=[monthly[month] for month in sorted(monthly)],
        top_products=top_products,
        generated_at=now,
    )
