"""
Declarative base and shared column mixins.
"""

from sqlalchemy import Column, func
from sqlalchemy.orm import DeclarativeBase

from medbook.db.types import UTCDateTime


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    # Server-generated timestamps are fetched on flush (RETURNING), so
    # serializing a freshly written row never triggers a lazy load.
    __mapper_args__ = {"eager_defaults": True}

    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
