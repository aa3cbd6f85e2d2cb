"""
Pydantic schemas for quote analytics.

WHAT: Portfolio-level metrics computed on demand from the quote repository.

WHY: Analytics are derived, never persisted; these schemas are both the
return type of the aggregator and the API response.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class MonthlyTrend(BaseModel):
    """Quotes created in one calendar month (YYYY-MM)."""

    month: str
    quotes: int = 0
    value: Decimal = Decimal("0.00")
    accepted: int = 0
    accepted_value: Decimal = Decimal("0.00")


class TopProduct(BaseModel):
    """Catalog product ranked by quoted value."""

    sku: str
    name: str
    quoted_quantity: Decimal = Decimal("0")
    quoted_value: Decimal = Decimal("0.00")
    quote_count: int = 0
    accepted_count: int = 0


class QuoteAnalytics(BaseModel):
    """
    Portfolio metrics.

    total_value sums every quote regardless of status; accepted_value and
    open_pipeline_value break it down. conversion_rate is a ratio in [0, 1].
    """

    total_quotes: int = 0
    total_value: Decimal = Decimal("0.00")
    accepted_value: Decimal = Decimal("0.00")
    open_pipeline_value: Decimal = Decimal("0.00")
    conversion_rate: Decimal = Decimal("0")
    average_quote_value: Decimal = Decimal("0.00")
    average_response_hours: Optional[Decimal] = None
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    monthly_trends: List[MonthlyTrend] = Field(default_factory=list)
    top_products: List[TopProduct] = Field(default_factory=list)
    generated_at: datetime
