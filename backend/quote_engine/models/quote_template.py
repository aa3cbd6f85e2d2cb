"""
Quote template model.

WHAT: Reusable starting point for a quote (stock line items + terms).

WHY: Most installs follow a handful of packages (residential AC wallbox,
commercial DC hub). Templates let contractors start from a priced package
and track which packages are used most via usage_count.

HOW: Line items and settings stored as JSON; usage_count is only advanced
with an atomic UPDATE from the DAO.
"""

from typing import Optional, List, Dict, Any, TYPE_CHECKING
from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import relationship, Mapped

from quote_engine.models.base import Base, JSONType, PrimaryKeyMixin, TimestampMixin

if TYPE_CHECKING:
    from quote_engine.models.quote import Quote


class QuoteTemplate(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Quote template model.

    Attributes:
        id: Primary key
        name: Display name
        description: What the package covers
        category: Grouping (residential, commercial, ...)
        is_default: Shipped with the portal
        line_items: Template line items (same shape as quote line items)
        settings: Default quote settings (validity days, terms, ...)
        usage_count: Number of quotes instantiated from this template
        created_by: Authoring user id
    """

    __tablename__ = "quote_templates"

    name: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    category: Mapped[Optional[str]] = Column(String(100), nullable=True, index=True)
    is_default: Mapped[bool] = Column(Boolean, nullable=False, default=False)

    line_items: Mapped[List[Dict[str, Any]]] = Column(JSONType, nullable=False, default=list)
    settings: Mapped[Dict[str, Any]] = Column(JSONType, nullable=False, default=dict)

    usage_count: Mapped[int] = Column(Integer, nullable=False, default=0)
    created_by: Mapped[Optional[str]] = Column(String(64), nullable=True)

    quotes: Mapped[List["Quote"]] = relationship(
        "Quote",
        back_populates="template",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<QuoteTemplate(id={self.id}, name={self.name}, usage_count={self.usage_count})>"
