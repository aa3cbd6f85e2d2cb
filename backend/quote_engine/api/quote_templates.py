"""
Quote template API endpoints.

WHAT: CRUD for quote templates and instantiation of a template into a quote.

WHY: Contractors sell a handful of standard packages (home AC charger,
commercial DC hub). Templates let a new quote start from a priced package
instead of an empty line item list.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.api.quotes import _quote_to_response
from quote_engine.core.deps import get_actor_id, get_template_service
from quote_engine.db.session import get_db
from quote_engine.models.quote_template import QuoteTemplate
from quote_engine.schemas.quote import QuoteResponse, QuoteSettings
from quote_engine.schemas.quote_template import (
    QuoteTemplateCreate,
    QuoteTemplateListResponse,
    QuoteTemplateResponse,
    TemplateInstantiateRequest,
)
from quote_engine.services.line_items import load_line_items
from quote_engine.services.pricing import ZERO
from quote_engine.services.template_engine import TemplateEngine
from quote_engine.services.template_service import QuoteTemplateService


router = APIRouter(prefix="/quote-templates", tags=["quote-templates"])


def _template_to_response(template: QuoteTemplate) -> QuoteTemplateResponse:
    line_items = load_line_items(template.line_items)
    return QuoteTemplateResponse(
        id=template.id,
        name=template.name,
        description=template.description,
        category=template.category,
        is_default=template.is_default,
        line_items=line_items,
        settings=QuoteSettings.model_validate(template.settings or {}),
        estimated_subtotal=sum((item.line_total for item in line_items), ZERO),
        usage_count=template.usage_count or 0,
        created_by=template.created_by,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


@router.post(
    "",
    response_model=QuoteTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quote template",
)
async def create_template(
    data: QuoteTemplateCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: QuoteTemplateService = Depends(get_template_service),
) -> QuoteTemplateResponse:
    template = await service.create_template(data, created_by=actor_id)
    return _template_to_response(template)


@router.get(
    "",
    response_model=QuoteTemplateListResponse,
    summary="List quote templates",
    description="Default templates first, then the most used",
)
async def list_templates(
    category: Optional[str] = Query(default=None, max_length=100),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: QuoteTemplateService = Depends(get_template_service),
) -> QuoteTemplateListResponse:
    templates = await service.list_templates(category=category, skip=skip, limit=limit)
    total = await service.count_templates(category=category)
    return QuoteTemplateListResponse(
        items=[_template_to_response(template) for template in templates],
        total=total,
    )


@router.get("/{template_id}", response_model=QuoteTemplateResponse, summary="Get quote template")
async def get_template(
    template_id: int,
    service: QuoteTemplateService = Depends(get_template_service),
) -> QuoteTemplateResponse:
    return _template_to_response(await service.get_template(template_id))


@router.put(
    "/{template_id}",
    response_model=QuoteTemplateResponse,
    summary="Replace quote template",
    description="Quotes already created from the template are not affected",
)
async def replace_template(
    template_id: int,
    data: QuoteTemplateCreate,
    service: QuoteTemplateService = Depends(get_template_service),
) -> QuoteTemplateResponse:
    return _template_to_response(await service.replace_template(template_id, data))


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete quote template",
    description="Quotes created from the template keep their content and lose the link",
)
async def delete_template(
    template_id: int,
    service: QuoteTemplateService = Depends(get_template_service),
) -> None:
    await service.delete_template(template_id)


@router.post(
    "/{template_id}/instantiate",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quote from template",
)
async def instantiate_template(
    template_id: int,
    data: Optional[TemplateInstantiateRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> QuoteResponse:
    """
    Create a DRAFT quote from a template.

    The template's line items are deep-copied, totals computed with the
    default tax rate and the template's usage_count advanced by one.

    Raises:
        TemplateNotFoundError (404): If template not found
    """
    data = data or TemplateInstantiateRequest()
    quote = await TemplateEngine(db).instantiate(
        template_id,
        project_id=data.project_id,
        client_info=data.client_info.model_dump(mode="json") if data.client_info else None,
        project_data=data.project_data.model_dump(mode="json") if data.project_data else None,
        title=data.title,
        description=data.description,
        assigned_to=data.assigned_to,
        created_by=actor_id,
    )
    return _quote_to_response(quote)
