"""
Quote model for EV charging installation pricing.

WHAT: SQLAlchemy model representing a contractor quote (CPQ document)
for an EV charging installation.

WHY: Quotes are the core commercial document of the portal:
1. Capture client and site snapshots at the time of quoting
2. Hold an ordered list of priced line items (chargers, cabling, labour)
3. Carry derived totals (subtotal, discount, GST, total)
4. Move through a review/send/decision lifecycle with an expiry date

HOW: Uses SQLAlchemy 2.0 with:
- Status stored as a string enum (transitions enforced by the lifecycle service)
- JSON/JSONB columns for line items and snapshots
- Numeric columns for derived totals, written only through apply_totals()
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any, TYPE_CHECKING
from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Numeric,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship, Mapped

from quote_engine.models.base import Base, JSONType, utcnow

if TYPE_CHECKING:
    from quote_engine.models.quote_template import QuoteTemplate


class QuoteStatus(str, Enum):
    """
    Quote lifecycle status.

    WHY: Tracks a quote through the sales process:
    - DRAFT: Being built by the contractor
    - PENDING_REVIEW: Awaiting internal review before sending
    - SENT: Sent to the client
    - VIEWED: Client has opened the quote
    - ACCEPTED: Client accepted (terminal)
    - REJECTED: Client declined (terminal)
    - EXPIRED: Validity period passed without a decision (terminal)
    """

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DiscountType(str, Enum):
    """Quote-level discount: a percentage of subtotal or a fixed amount."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _status_column(enum_cls: type, name: str) -> SQLEnum:
    # WHY: native_enum=False stores the lowercase value as VARCHAR on every
    # backend, so SQLite tests and PostgreSQL agree without a DB enum type
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda enum: [e.value for e in enum],
    )


class Quote(Base):
    """
    Contractor quote model.

    Attributes:
        id: Primary key
        quote_number: Human-facing unique number (e.g. QT2610-0007)
        title: Quote title
        description: Scope description
        status: Current lifecycle status
        version: Revision number (1 for new quotes and duplicates)
        project_id: Weak reference to an external project
        template_id: Template the quote was created from
        source_quote_id: Quote this one was duplicated from
        client_info: Client snapshot (name, company, contact, ABN, ...)
        client_name: Denormalized client name for search/sort
        client_company: Denormalized client company for search/sort
        project_data: Site/project snapshot
        line_items: Ordered JSON array of priced line items
        settings: Validity days, terms, payment terms, warranty, ...
        tax_rate: GST rate in percent
        discount_type: percentage or fixed
        discount_value: Discount input (percent or amount)
        subtotal / discount_amount / tax_amount / total_ex_tax / total: Derived totals
        valid_until: Expiry timestamp
        submitted_at / sent_at / viewed_at / accepted_at / rejected_at / expired_at: Status timestamps
        rejection_reason: Client's reason for rejecting
        decision_notes: Client's notes on accept/reject
        view_count: Number of times the client opened the share link
        share_token: Token for the public client view
        created_by: Authoring user id
        assigned_to: Responsible user id
    """

    __tablename__ = "quotes"
    __table_args__ = (
        # Expiry sweep scans open quotes by validity date
        Index("ix_quotes_status_valid_until", "status", "valid_until"),
        CheckConstraint("total >= 0", name="ck_quotes_total_non_negative"),
    )

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)

    quote_number: Mapped[str] = Column(
        String(32),
        nullable=False,
        unique=True,
        index=True,
        comment="Human-facing unique quote number",
    )
    title: Mapped[str] = Column(String(255), nullable=False, comment="Quote title")
    description: Mapped[Optional[str]] = Column(Text, nullable=True)

    status: Mapped[QuoteStatus] = Column(
        _status_column(QuoteStatus, "quotestatus"),
        nullable=False,
        default=QuoteStatus.DRAFT,
        index=True,
        comment="Current lifecycle status",
    )
    version: Mapped[int] = Column(Integer, nullable=False, default=1)

    # WHY: projects live in another service; no FK
    project_id: Mapped[Optional[str]] = Column(
        String(64),
        nullable=True,
        index=True,
        comment="External project reference",
    )
    template_id: Mapped[Optional[int]] = Column(
        Integer,
        ForeignKey("quote_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    source_quote_id: Mapped[Optional[int]] = Column(
        Integer,
        ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True,
        comment="Quote this was duplicated from",
    )

    # Snapshots
    client_info: Mapped[Dict[str, Any]] = Column(JSONType, nullable=False, default=dict)
    client_name: Mapped[Optional[str]] = Column(String(255), nullable=True, index=True)
    client_company: Mapped[Optional[str]] = Column(String(255), nullable=True)
    project_data: Mapped[Optional[Dict[str, Any]]] = Column(JSONType, nullable=True)

    # Format: [{"id": str, "name": str, "quantity": "2", "unit_price": "1200.00", "line_total": "2400.00", ...}]
    line_items: Mapped[List[Dict[str, Any]]] = Column(
        JSONType,
        nullable=False,
        default=list,
        comment="Ordered line items",
    )
    settings: Mapped[Dict[str, Any]] = Column(JSONType, nullable=False, default=dict)

    # Pricing inputs
    tax_rate: Mapped[Decimal] = Column(Numeric(5, 2), nullable=False, default=Decimal("10"))
    discount_type: Mapped[DiscountType] = Column(
        _status_column(DiscountType, "discounttype"),
        nullable=False,
        default=DiscountType.PERCENTAGE,
    )
    discount_value: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)

    # Derived totals
    subtotal: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    total_ex_tax: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    total: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0, index=True)

    # Validity and status timestamps
    valid_until: Mapped[datetime] = Column(DateTime, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    sent_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    viewed_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    expired_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    rejection_reason: Mapped[Optional[str]] = Column(Text, nullable=True)
    decision_notes: Mapped[Optional[str]] = Column(Text, nullable=True)

    # Client access
    view_count: Mapped[int] = Column(Integer, nullable=False, default=0)
    share_token: Mapped[Optional[str]] = Column(String(64), nullable=True, unique=True, index=True)

    # Ownership
    created_by: Mapped[Optional[str]] = Column(String(64), nullable=True)
    assigned_to: Mapped[Optional[str]] = Column(String(64), nullable=True)

    created_at: Mapped[datetime] = Column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    template: Mapped[Optional["QuoteTemplate"]] = relationship(
        "QuoteTemplate",
        back_populates="quotes",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Quote(id={self.id}, number={self.quote_number}, status={self.status})>"

    @property
    def is_editable(self) -> bool:
        """
        Check if line items and pricing inputs can still change.

        WHY: Once sent, the client has seen the numbers; edits would make the
        document they hold diverge from ours.

        Returns:
            True if quote is in DRAFT or PENDING_REVIEW
        """
        return self.status in (QuoteStatus.DRAFT, QuoteStatus.PENDING_REVIEW)

    @property
    def is_terminal(self) -> bool:
        """True once the quote is accepted, rejected or expired."""
        return self.status in (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED)

    def is_past_validity(self, now: Optional[datetime] = None) -> bool:
        """True if now is strictly after valid_until."""
        return (now or utcnow()) > self.valid_until

    @staticmethod
    def client_columns(client_info: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Column values for a client snapshot, including the search columns."""
        client_info = dict(client_info or {})
        return {
            "client_info": client_info,
            "client_name": client_info.get("name") or None,
            "client_company": client_info.get("company") or None,
        }

    def set_client_info(self, client_info: Optional[Dict[str, Any]]) -> None:
        """Replace the client snapshot and keep the search columns in sync."""
        for field, value in self.client_columns(client_info).items():
            setattr(self, field, value)

    def apply_totals(self, totals: Any) -> None:
        """
        Write derived totals onto the quote.

        WHY: The only writer of the total columns; callers pass the
        QuoteTotals produced by the pricing calculator.
        """
        self.tax_rate = totals.tax_rate
        self.discount_type = totals.discount_type
        self.discount_value = totals.discount_value
        self.subtotal = totals.subtotal
        self.discount_amount = totals.discount_amount
        self.tax_amount = totals.tax_amount
        self.total_ex_tax = totals.total_ex_tax
        self.total = totals.total
