"""
FastAPI dependencies shared by the quote routers.

WHY: Dependencies give every route the same session-bound services and the
same view of who is acting, without repeating the wiring in each handler.
"""

from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.db.session import get_db
from quote_engine.services.quote_service import QuoteService
from quote_engine.services.template_service import QuoteTemplateService


async def get_actor_id(request: Request) -> Optional[str]:
    """
    Acting user for the current request.

    WHY: Authentication lives in the portal in front of this service; it
    forwards the authenticated user in X-Actor-Id, which
    RequestContextMiddleware captures. Used for created_by.

    Returns:
        The actor id, or None when the caller did not identify itself
    """
    context = getattr(request.state, "context", None)
    return context.actor_id if context else None


async def get_quote_service(db: AsyncSession = Depends(get_db)) -> QuoteService:
    return QuoteService(db)


async def get_template_service(db: AsyncSession = Depends(get_db)) -> QuoteTemplateService:
    return QuoteTemplateService(db)
