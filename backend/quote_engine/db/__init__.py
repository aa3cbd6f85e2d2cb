"""Database package"""

from quote_engine.db.session import AsyncSessionLocal, engine, get_db
from quote_engine.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
