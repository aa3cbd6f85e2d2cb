"""
Quote number sequence model.

WHY: Quote numbers must be unique and readable (QT2610-0007). A per-month
counter row advanced with a single atomic UPDATE gives that without
relying on clocks or random suffixes.
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import Mapped

from quote_engine.models.base import Base


class QuoteNumberSequence(Base):
    """
    Per-period counter for quote numbers.

    Attributes:
        period: Period key, YYMM (e.g. "2610")
        last_value: Last sequence value issued in the period
    """

    __tablename__ = "quote_number_sequences"

    period: Mapped[str] = Column(String(16), primary_key=True)
    last_value: Mapped[int] = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<QuoteNumberSequence(period={self.period}, last_value={self.last_value})>"
