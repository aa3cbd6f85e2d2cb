"""
Pydantic schemas for quote endpoints.

WHAT: Request/response schemas for the quote (CPQ) API.

WHY: Schemas define API contracts for quote operations:
1. Validate incoming line items (positive quantity, sane percentages)
2. Keep status and quote number out of update payloads (lifecycle only)
3. Document API for OpenAPI/Swagger
4. Separate the contractor view from the client (share link) view

HOW: Uses Pydantic v2 with Decimal money fields, nested models for line
items and snapshots, and typed patch structs for partial updates.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from quote_engine.models.quote import DiscountType, QuoteStatus


class LineItemType(str, Enum):
    """Kind of line item; drives default markup for catalog products."""

    CHARGER = "charger"
    ACCESSORY = "accessory"
    INSTALLATION = "installation"
    SERVICE = "service"
    CUSTOM = "custom"


class LineItemUnit(str, Enum):
    """Unit of measure shown next to the quantity."""

    EACH = "each"
    HOUR = "hour"
    METER = "meter"
    SQM = "sqm"
    LINEAR_METER = "linear_meter"


# ============================================================================
# Snapshots
# ============================================================================


class ProductRef(BaseModel):
    """Catalog product reference copied onto a line item."""

    product_id: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=100)
    name: Optional[str] = None
    supplier_name: Optional[str] = None
    part_number: Optional[str] = None


class ClientInfo(BaseModel):
    """
    Client snapshot.

    WHY: Stored by value so later edits to the CRM record never change a
    quote that was already sent.
    """

    name: str = Field(default="", max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    contact_person: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)
    abn: Optional[str] = Field(default=None, max_length=20)


class ProjectData(BaseModel):
    """Site/project snapshot taken from the project management module."""

    project_name: Optional[str] = Field(default=None, max_length=255)
    site_address: Optional[str] = Field(default=None, max_length=500)
    site_type: Optional[str] = Field(default=None, max_length=50)
    estimated_install_date: Optional[date] = None


class VolumeDiscount(BaseModel):
    """
    Quantity-based price tier.

    Lines whose type or category is in applicable_categories get
    discount_percentage off their unit price once the combined quantity of
    such lines reaches minimum_quantity.
    """

    minimum_quantity: Decimal = Field(..., gt=0)
    discount_percentage: Decimal = Field(..., gt=0, le=100)
    applicable_categories: List[str] = Field(..., min_length=1)


class QuoteSettings(BaseModel):
    """Commercial terms printed on the quote, plus volume pricing tiers."""

    validity_days: int = Field(default=30, ge=1, le=365)
    terms: Optional[str] = Field(default=None, max_length=10000)
    notes: Optional[str] = Field(default=None, max_length=5000)
    payment_terms: Optional[str] = Field(default=None, max_length=1000)
    warranty: Optional[str] = Field(default=None, max_length=1000)
    delivery_terms: Optional[str] = Field(default=None, max_length=1000)
    volume_discounts: Optional[List[VolumeDiscount]] = Field(
        default=None,
        description="Overrides the configured tiers; an empty list disables volume discounts",
    )


# ============================================================================
# Line items
# ============================================================================


class LineItemInput(BaseModel):
    """
    Line item as supplied by a caller.

    WHY: line_total is never accepted from the caller; the pricing
    calculator derives it. ``id`` is optional so a full replace can keep
    existing line ids.
    """

    id: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: LineItemType = LineItemType.CUSTOM
    category: Optional[str] = Field(default=None, max_length=100)
    quantity: Decimal = Field(..., gt=0, description="Quantity (must be positive)")
    unit: LineItemUnit = LineItemUnit.EACH
    unit_price: Decimal = Field(..., description="Unit price before markup; negative for credits")
    markup_percent: Decimal = Field(default=Decimal("0"), ge=0, le=1000)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    cost: Optional[Decimal] = Field(default=None, ge=0, description="Internal cost price")
    is_optional: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000)
    product_ref: Optional[ProductRef] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Tesla Wall Connector Gen 3",
                "type": "charger",
                "category": "AC Chargers",
                "quantity": 1,
                "unit": "each",
                "unit_price": "650.00",
                "markup_percent": "30",
            }
        }
    )


class LineItem(LineItemInput):
    """Stored/returned line item with its id and derived total."""

    id: str
    volume_discount_percent: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0.00")


class LineItemUpdate(BaseModel):
    """Typed patch for a single line item. Omitted fields are unchanged."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[LineItemType] = None
    category: Optional[str] = Field(default=None, max_length=100)
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit: Optional[LineItemUnit] = None
    unit_price: Optional[Decimal] = None
    markup_percent: Optional[Decimal] = Field(default=None, ge=0, le=1000)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    is_optional: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    specifications: Optional[Dict[str, Any]] = None


class LineItemReorder(BaseModel):
    """New order of line ids; must be a permutation of the current ids."""

    line_item_ids: List[str] = Field(..., min_length=0)


class ChargerSelection(BaseModel):
    """
    Charger selection snapshot from the project management module.

    WHY: A project that already knows which chargers it needs gets a quote
    pre-filled with charger, installation and canopy lines.
    """

    charging_type: str = Field(..., min_length=1, max_length=50, description="e.g. ac-level2, dc-fast")
    power_rating: str = Field(..., min_length=1, max_length=20, description="e.g. 7kw, 22kw, 50kw")
    number_of_chargers: int = Field(..., ge=1, le=1000)
    connector_types: List[str] = Field(default_factory=list)
    mounting_type: Optional[str] = Field(default=None, max_length=50)
    weather_protection: bool = False
    network_connectivity: Optional[str] = Field(default=None, max_length=50)


class CatalogProduct(BaseModel):
    """
    Catalog record handed over by the product catalog module.

    WHY: The catalog is an external collaborator; the engine copies the
    fields it needs and never reads the catalog itself.
    """

    product_id: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: LineItemType = LineItemType.CHARGER
    category: Optional[str] = None
    unit_price: Decimal
    cost: Optional[Decimal] = Field(default=None, ge=0)
    unit: LineItemUnit = LineItemUnit.EACH
    supplier_name: Optional[str] = None
    part_number: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    markup_percent: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=1000,
        description="Defaults to the standard markup for the line item type",
    )


# ============================================================================
# Totals
# ============================================================================


class QuoteTotalsSchema(BaseModel):
    """Derived totals of a quote."""

    subtotal: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_ex_tax: Decimal
    total: Decimal


class ExpectedTotals(BaseModel):
    """
    Totals a caller believes the quote has.

    WHY: Callers that send totals on a full replace get them checked
    against the derived totals instead of silently overwritten.
    """

    subtotal: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None


# ============================================================================
# Requests
# ============================================================================


class QuoteCreate(BaseModel):
    """
    Quote creation request schema.

    WHY: A quote is created blank (optionally linked to a project and
    pre-filled with client/site snapshots) or from a template. Quotes
    always start in DRAFT.
    """

    model_config = ConfigDict(extra="forbid")

    template_id: Optional[int] = Field(default=None, gt=0)
    project_id: Optional[str] = Field(default=None, max_length=64)
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    client_info: Optional[ClientInfo] = None
    project_data: Optional[ProjectData] = None
    line_items: List[LineItemInput] = Field(default_factory=list)
    charger_selection: Optional[ChargerSelection] = Field(
        default=None,
        description="Generates charger, installation and canopy lines after line_items",
    )
    settings: Optional[QuoteSettings] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=2)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    valid_until: Optional[datetime] = None
    assigned_to: Optional[str] = Field(default=None, max_length=64)
    quote_number: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=32,
        description="Only for imports; generated when omitted",
    )


class QuoteReplace(BaseModel):
    """
    Full replace of a quote's editable content (PUT).

    WHY: Status, quote number, id and timestamps are not accepted here;
    status only changes through the lifecycle endpoints.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    project_id: Optional[str] = Field(default=None, max_length=64)
    client_info: ClientInfo
    project_data: Optional[ProjectData] = None
    line_items: List[LineItemInput] = Field(default_factory=list)
    settings: QuoteSettings = Field(default_factory=QuoteSettings)
    tax_rate: Decimal = Field(..., ge=0, le=100, decimal_places=2)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    valid_until: datetime
    assigned_to: Optional[str] = Field(default=None, max_length=64)
    totals: Optional[ExpectedTotals] = None


class QuotePatch(BaseModel):
    """Typed partial update (PATCH). Omitted fields are unchanged."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    project_id: Optional[str] = Field(default=None, max_length=64)
    client_info: Optional[ClientInfo] = None
    project_data: Optional[ProjectData] = None
    settings: Optional[QuoteSettings] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=2)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    valid_until: Optional[datetime] = None
    assigned_to: Optional[str] = Field(default=None, max_length=64)


class StatusChangeRequest(BaseModel):
    """Generic lifecycle transition request."""

    status: QuoteStatus
    reason: Optional[str] = Field(default=None, max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=5000)


class QuoteDecision(BaseModel):
    """Client decision payload for accept/reject."""

    reason: Optional[str] = Field(default=None, max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=5000)


# ============================================================================
# Responses
# ============================================================================


class QuoteResponse(BaseModel):
    """Contractor view of a quote."""

    id: int
    quote_number: str
    title: str
    description: Optional[str]
    status: QuoteStatus
    version: int
    project_id: Optional[str]
    template_id: Optional[int]
    source_quote_id: Optional[int]
    client_info: ClientInfo
    project_data: Optional[ProjectData]
    line_items: List[LineItem]
    settings: QuoteSettings
    totals: QuoteTotalsSchema
    valid_until: datetime
    submitted_at: Optional[datetime]
    sent_at: Optional[datetime]
    viewed_at: Optional[datetime]
    accepted_at: Optional[datetime]
    rejected_at: Optional[datetime]
    expired_at: Optional[datetime]
    rejection_reason: Optional[str]
    decision_notes: Optional[str]
    view_count: int
    has_share_link: bool
    is_editable: bool
    created_by: Optional[str]
    assigned_to: Optional[str]
    created_at: datetime
    updated_at: datetime


class QuoteListResponse(BaseModel):
    """Paginated quote search result."""

    items: List[QuoteResponse]
    total: int
    skip: int
    limit: int


class ClientLineItem(BaseModel):
    """Line item as shown to the client (no cost or markup)."""

    id: str
    name: str
    description: Optional[str]
    type: LineItemType
    category: Optional[str]
    quantity: Decimal
    unit: LineItemUnit
    unit_price: Decimal
    discount_percent: Decimal
    line_total: Decimal
    is_optional: bool


class ClientQuoteView(BaseModel):
    """Quote as shown through a share link."""

    quote_number: str
    title: str
    description: Optional[str]
    status: QuoteStatus
    client_info: ClientInfo
    project_data: Optional[ProjectData]
    line_items: List[ClientLineItem]
    settings: QuoteSettings
    totals: QuoteTotalsSchema
    valid_until: datetime
    sent_at: Optional[datetime]


class ShareLinkResponse(BaseModel):
    """Share link for the public client view."""

    token: str
    url: str
