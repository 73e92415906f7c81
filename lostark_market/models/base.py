"""
SQLAlchemy 2.0 async DeclarativeBase for Lost Ark Market Sync.

All models inherit from this Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all market sync database models."""
    pass
