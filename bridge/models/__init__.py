"""SQLAlchemy declarative base and bridge models.

This package hosts the SQLAlchemy models used by the bridge.  It exposes a
single declarative ``Base`` class that other modules can import when creating
tables.  Individual models live in dedicated modules within this package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


from .conversation_state import ConversationState


__all__ = [
    "Base",
    "ConversationState",
]
