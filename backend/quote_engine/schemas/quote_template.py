"""
Pydantic schemas for quote template endpoints.

WHAT: Request/response schemas for managing and instantiating templates.

WHY: Templates share the line item shape of quotes so a template can be
materialized into a quote without translation.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from quote_engine.schemas.quote import (
    ClientInfo,
    LineItem,
    LineItemInput,
    ProjectData,
    QuoteSettings,
)


class QuoteTemplateCreate(BaseModel):
    """Template creation (and full replace) request schema."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    is_default: bool = False
    line_items: List[LineItemInput] = Field(default_factory=list)
    settings: QuoteSettings = Field(default_factory=QuoteSettings)


class QuoteTemplateResponse(BaseModel):
    """Template response; estimated_subtotal is the pre-tax package price."""

    id: int
    name: str
    description: Optional[str]
    category: Optional[str]
    is_default: bool
    line_items: List[LineItem]
    settings: QuoteSettings
    estimated_subtotal: Decimal
    usage_count: int
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime


class QuoteTemplateListResponse(BaseModel):
    items: List[QuoteTemplateResponse]
    total: int


class TemplateInstantiateRequest(BaseModel):
    """
    Overrides applied when creating a quote from a template.

    WHY: The project management UI passes the project and client snapshots
    so the new quote is ready to send without re-keying.
    """

    model_config = ConfigDict(extra="forbid")

    project_id: Optional[str] = Field(default=None, max_length=64)
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    client_info: Optional[ClientInfo] = None
    project_data: Optional[ProjectData] = None
    assigned_to: Optional[str] = Field(default=None, max_length=64)
