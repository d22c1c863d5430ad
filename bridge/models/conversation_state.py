"""Mapping from a chat sender to the ticket that is currently open for them."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class ConversationState(Base):
    """Open ticket of a sender.

    Attributes:
        sender_id: Canonical chat address of the sender.
        ticket_id: Identifier of the ticket new messages are appended to.
        updated_at: Last time the mapping was written.
    """

    __tablename__ = "conversation_states"

    sender_id: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"ConversationState(sender_id={self.sender_id!r}, ticket_id={self.ticket_id!r})"
