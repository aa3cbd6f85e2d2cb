"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from quote_engine.models.base import Base, TimestampMixin, PrimaryKeyMixin
from quote_engine.models.quote import Quote, QuoteStatus, DiscountType
from quote_engine.models.quote_template import QuoteTemplate
from quote_engine.models.quote_sequence import QuoteNumberSequence

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "Quote",
    "QuoteStatus",
    "DiscountType",
    "QuoteTemplate",
    "QuoteNumberSequence",
]
