"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from quote_engine.dao.base import BaseDAO
from quote_engine.dao.quote import QuoteDAO
from quote_engine.dao.quote_template import QuoteTemplateDAO
from quote_engine.dao.quote_sequence import QuoteNumberSequenceDAO

__all__ = [
    "BaseDAO",
    "QuoteDAO",
    "QuoteTemplateDAO",
    "QuoteNumberSequenceDAO",
]
