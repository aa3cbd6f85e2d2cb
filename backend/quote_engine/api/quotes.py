"""
Quote API endpoints.

WHAT: RESTful API for quotes: CRUD, duplication, line item editing, status
transitions, PDF export and client share links.

WHY: Quotes are created from the project management UI, filled from the
product catalog and sometimes drafted by chat assistants. All of them go
through these routes so every change runs through QuoteService, which keeps
totals derived and status under the state machine.

HOW: FastAPI router with:
- Thin handlers delegating to QuoteService (one per request session)
- Typed request bodies (QuoteCreate / QuoteReplace / QuotePatch)
- Lifecycle shortcuts plus a generic /transitions endpoint
- A public /shared/{token} route for the client view
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, Response, status

from quote_engine.core.config import settings
from quote_engine.core.deps import get_actor_id, get_quote_service
from quote_engine.dao.quote import SORT_FIELDS
from quote_engine.models.quote import Quote, QuoteStatus
from quote_engine.schemas.quote import (
    CatalogProduct,
    ClientInfo,
    ClientLineItem,
    ClientQuoteView,
    LineItemInput,
    LineItemReorder,
    LineItemUpdate,
    ProjectData,
    QuoteCreate,
    QuoteDecision,
    QuoteListResponse,
    QuotePatch,
    QuoteReplace,
    QuoteResponse,
    QuoteSettings,
    QuoteTotalsSchema,
    ShareLinkResponse,
    StatusChangeRequest,
)
from quote_engine.services.line_items import load_line_items
from quote_engine.services.pdf_service import QuotePDFService, get_pdf_service
from quote_engine.services.pricing import sell_unit_price
from quote_engine.services.quote_service import QuoteService


router = APIRouter(prefix="/quotes", tags=["quotes"])

SortField = Literal[SORT_FIELDS]


def _totals(quote: Quote) -> QuoteTotalsSchema:
    return QuoteTotalsSchema(
        subtotal=quote.subtotal,
        discount_type=quote.discount_type,
        discount_value=quote.discount_value,
        discount_amount=quote.discount_amount,
        tax_rate=quote.tax_rate,
        tax_amount=quote.tax_amount,
        total_ex_tax=quote.total_ex_tax,
        total=quote.total,
    )


def _quote_to_response(quote: Quote) -> QuoteResponse:
    """
    Convert Quote model to QuoteResponse schema.

    WHY: Centralized conversion keeps the JSON snapshots (client, project,
    line items, settings) typed in every response.
    """
    return QuoteResponse(
        id=quote.id,
        quote_number=quote.quote_number,
        title=quote.title,
        description=quote.description,
        status=QuoteStatus(quote.status),
        version=quote.version,
        project_id=quote.project_id,
        template_id=quote.template_id,
        source_quote_id=quote.source_quote_id,
        client_info=ClientInfo.model_validate(quote.client_info or {}),
        project_data=ProjectData.model_validate(quote.project_data) if quote.project_data else None,
        line_items=load_line_items(quote.line_items),
        settings=QuoteSettings.model_validate(quote.settings or {}),
        totals=_totals(quote),
        valid_until=quote.valid_until,
        submitted_at=quote.submitted_at,
        sent_at=quote.sent_at,
        viewed_at=quote.viewed_at,
        accepted_at=quote.accepted_at,
        rejected_at=quote.rejected_at,
        expired_at=quote.expired_at,
        rejection_reason=quote.rejection_reason,
        decision_notes=quote.decision_notes,
        view_count=quote.view_count or 0,
        has_share_link=bool(quote.share_token),
        is_editable=quote.is_editable,
        created_by=quote.created_by,
        assigned_to=quote.assigned_to,
        created_at=quote.created_at,
        updated_at=quote.updated_at,
    )


def _quote_to_client_view(quote: Quote) -> ClientQuoteView:
    """Client view: sell prices only, no cost, markup or internal notes."""
    line_items = [
        ClientLineItem(
            id=item.id,
            name=item.name,
            description=item.description,
            type=item.type,
            category=item.category,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=sell_unit_price(item),
            discount_percent=item.discount_percent,
            line_total=item.line_total,
            is_optional=item.is_optional,
        )
        for item in load_line_items(quote.line_items)
    ]
    return ClientQuoteView(
        quote_number=quote.quote_number,
        title=quote.title,
        description=quote.description,
        status=QuoteStatus(quote.status),
        client_info=ClientInfo.model_validate(quote.client_info or {}),
        project_data=ProjectData.model_validate(quote.project_data) if quote.project_data else None,
        line_items=line_items,
        settings=QuoteSettings.model_validate(quote.settings or {}),
        totals=_totals(quote),
        valid_until=quote.valid_until,
        sent_at=quote.sent_at,
    )


# ============================================================================
# CRUD
# ============================================================================


@router.post(
    "",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quote",
    description="Create a blank DRAFT quote or instantiate one from a template",
)
async def create_quote(
    data: QuoteCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """
    Create a new quote.

    Raises:
        TemplateNotFoundError (404): If template_id doesn't exist
        ValidationError (400): If the quote number is taken or fields conflict
    """
    quote = await service.create_quote(data, created_by=actor_id)
    return _quote_to_response(quote)


@router.get(
    "",
    response_model=QuoteListResponse,
    summary="Search quotes",
    description="List quotes with status filter, free-text search and sorting",
)
async def search_quotes(
    status_filter: Optional[QuoteStatus] = Query(default=None, alias="status"),
    q: Optional[str] = Query(
        default=None,
        max_length=200,
        description="Matches quote number, title, client name and company",
    ),
    project_id: Optional[str] = Query(default=None, max_length=64),
    sort_by: SortField = Query(default="updated_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    skip: int = Query(default=0, ge=0, description="Number of items to skip"),
    limit: int = Query(default=20, ge=1, le=100, description="Maximum items to return"),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteListResponse:
    quotes, total = await service.search(
        status=status_filter,
        q=q,
        project_id=project_id,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )
    return QuoteListResponse(
        items=[_quote_to_response(quote) for quote in quotes],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/shared/{token}",
    response_model=ClientQuoteView,
    summary="Open shared quote",
    description="Client view of a quote; records a read receipt",
)
async def open_shared_quote(
    token: str,
    service: QuoteService = Depends(get_quote_service),
) -> ClientQuoteView:
    """
    Client opens a share link.

    WHY: Opening the link is the read receipt: view_count goes up and a
    SENT quote moves to VIEWED.
    """
    quote = await service.open_shared_quote(token)
    return _quote_to_client_view(quote)


@router.get("/{quote_id}", response_model=QuoteResponse, summary="Get quote")
async def get_quote(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """
    Get a quote by ID.

    An open quote past its validity date is returned (and stored) as EXPIRED.
    """
    quote = await service.get_quote(quote_id)
    return _quote_to_response(quote)


@router.put(
    "/{quote_id}",
    response_model=QuoteResponse,
    summary="Replace quote",
    description="Replace the editable content of a DRAFT or PENDING_REVIEW quote",
)
async def replace_quote(
    quote_id: int,
    data: QuoteReplace,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """
    Full replace of a quote.

    Raises:
        QuoteNotFoundError (404): If quote not found
        InvalidStateTransitionError (400): If the quote is no longer editable
        ValidationError (400): If supplied totals disagree with derived totals
    """
    quote = await service.replace_quote(quote_id, data)
    return _quote_to_response(quote)


@router.patch("/{quote_id}", response_model=QuoteResponse, summary="Patch quote")
async def patch_quote(
    quote_id: int,
    data: QuotePatch,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.patch_quote(quote_id, data)
    return _quote_to_response(quote)


@router.delete(
    "/{quote_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete quote",
)
async def delete_quote(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> None:
    """
    Delete a quote.

    Deleting an unknown id is not an error; the result is the same.
    """
    await service.delete_quote(quote_id)


@router.post(
    "/{quote_id}/duplicate",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate quote",
    description="Copy a quote into a new, independent DRAFT",
)
async def duplicate_quote(
    quote_id: int,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.duplicate_quote(quote_id, created_by=actor_id)
    return _quote_to_response(quote)


# ============================================================================
# Line items
# ============================================================================


@router.post(
    "/{quote_id}/line-items",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add line item",
)
async def add_line_item(
    quote_id: int,
    item: LineItemInput,
    position: Optional[int] = Query(default=None, ge=0, description="Insert position (default: end)"),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.add_line_item(quote_id, item, position=position)
    return _quote_to_response(quote)


@router.post(
    "/{quote_id}/line-items/from-catalog",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add catalog product",
    description="Copy a catalog product onto the quote as a line item",
)
async def add_catalog_product(
    quote_id: int,
    product: CatalogProduct,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.add_catalog_product(quote_id, product)
    return _quote_to_response(quote)


@router.put(
    "/{quote_id}/line-items/order",
    response_model=QuoteResponse,
    summary="Reorder line items",
)
async def reorder_line_items(
    quote_id: int,
    data: LineItemReorder,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.reorder_line_items(quote_id, data.line_item_ids)
    return _quote_to_response(quote)


@router.patch(
    "/{quote_id}/line-items/{line_item_id}",
    response_model=QuoteResponse,
    summary="Update line item",
)
async def update_line_item(
    quote_id: int,
    line_item_id: str,
    changes: LineItemUpdate,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.update_line_item(quote_id, line_item_id, changes)
    return _quote_to_response(quote)


@router.delete(
    "/{quote_id}/line-items/{line_item_id}",
    response_model=QuoteResponse,
    summary="Remove line item",
)
async def remove_line_item(
    quote_id: int,
    line_item_id: str,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.remove_line_item(quote_id, line_item_id)
    return _quote_to_response(quote)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{quote_id}/transitions",
    response_model=QuoteResponse,
    summary="Change quote status",
    description="Move a quote to another status through the lifecycle state machine",
)
async def change_status(
    quote_id: int,
    data: StatusChangeRequest,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """
    Generic status change.

    Raises:
        InvalidStateTransitionError (400): If the transition is not allowed
    """
    quote = await service.change_status(quote_id, data.status, reason=data.reason, notes=data.notes)
    return _quote_to_response(quote)


@router.post("/{quote_id}/submit", response_model=QuoteResponse, summary="Submit for review")
async def submit_quote(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    return _quote_to_response(await service.submit_for_review(quote_id))


@router.post("/{quote_id}/send", response_model=QuoteResponse, summary="Send quote")
async def send_quote(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    return _quote_to_response(await service.send_quote(quote_id))


@router.post("/{quote_id}/view", response_model=QuoteResponse, summary="Mark quote viewed")
async def mark_viewed(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    return _quote_to_response(await service.mark_viewed(quote_id))


@router.post("/{quote_id}/accept", response_model=QuoteResponse, summary="Accept quote")
async def accept_quote(
    quote_id: int,
    data: Optional[QuoteDecision] = None,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.accept_quote(quote_id, notes=data.notes if data else None)
    return _quote_to_response(quote)


@router.post("/{quote_id}/reject", response_model=QuoteResponse, summary="Reject quote")
async def reject_quote(
    quote_id: int,
    data: Optional[QuoteDecision] = None,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    quote = await service.reject_quote(
        quote_id,
        reason=data.reason if data else None,
        notes=data.notes if data else None,
    )
    return _quote_to_response(quote)


@router.post("/{quote_id}/expire", response_model=QuoteResponse, summary="Expire quote")
async def expire_quote(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """
    Expire a quote now.

    Only allowed once the validity date has passed.
    """
    return _quote_to_response(await service.expire_quote(quote_id))


# ============================================================================
# Export
# ============================================================================


@router.get("/{quote_id}/pdf", summary="Download quote PDF")
async def download_quote_pdf(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
    pdf_service: QuotePDFService = Depends(get_pdf_service),
) -> Response:
    """
    Download a quote as PDF.

    Returns:
        PDF file as downloadable response

    Raises:
        QuoteNotFoundError (404): If quote not found
        ExportError (500): If rendering fails
    """
    quote = await service.get_quote(quote_id)
    pdf_bytes = pdf_service.generate_quote_pdf(quote)

    filename = f"quote-{quote.quote_number}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )


@router.post(
    "/{quote_id}/share",
    response_model=ShareLinkResponse,
    summary="Create share link",
    description="Create (or return the existing) client share link",
)
async def create_share_link(
    quote_id: int,
    service: QuoteService = Depends(get_quote_service),
) -> ShareLinkResponse:
    token = await service.create_share_link(quote_id)
    return ShareLinkResponse(
        token=token,
        url=f"{settings.FRONTEND_URL.rstrip('/')}/quotes/shared/{token}",
    )
