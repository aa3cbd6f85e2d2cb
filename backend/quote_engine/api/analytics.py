"""
Analytics API endpoints.

WHAT: Portfolio metrics over all quotes.

WHY: Contractors watch quoted value, conversion rate and client response
time to decide where to spend sales effort.

HOW: Loads a read-only snapshot of every quote and runs the pure
aggregator, which reads overdue quotes as expired; nothing is written.
"""

from fastapi import APIRouter, Depends, Query

from quote_engine.core.deps import get_quote_service
from quote_engine.models.base import utcnow
from quote_engine.schemas.analytics import QuoteAnalytics
from quote_engine.services.analytics import TOP_PRODUCTS_LIMIT, analyze
from quote_engine.services.quote_service import QuoteService


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get(
    "/quotes",
    response_model=QuoteAnalytics,
    summary="Quote analytics",
    description="Totals, conversion, status breakdown, monthly trends and top products",
)
async def get_quote_analytics(
    top_products: int = Query(default=TOP_PRODUCTS_LIMIT, ge=1, le=50),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteAnalytics:
    now = utcnow()
    quotes = await service.get_all()
    return analyze(quotes, now=now, top_products_limit=top_products)
