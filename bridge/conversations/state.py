"""Persistence of the open ticket per sender."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import StoreUnavailable
from ..models import ConversationState
from ..models.session import session_scope


class ConversationStateStore(Protocol):
    """Abstraction used by :class:`BridgeService` to track open tickets."""

    def get(self, sender_id: str) -> Optional[str]: ...

    def set(self, sender_id: str, ticket_id: str) -> None: ...

    def delete(self, sender_id: str) -> bool: ...


class InMemoryConversationStateStore(ConversationStateStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._states: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, sender_id: str) -> Optional[str]:
        with self._lock:
            return self._states.get(sender_id)

    def set(self, sender_id: str, ticket_id: str) -> None:
        with self._lock:
            self._states[sender_id] = ticket_id

    def delete(self, sender_id: str) -> bool:
        with self._lock:
            return self._states.pop(sender_id, None) is not None


class SqlConversationStateStore(ConversationStateStore):
    """SQLAlchemy implementation of :class:`ConversationStateStore`."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, sender_id: str) -> Optional[str]:
        try:
            with session_scope(self._session_factory) as session:
                return session.scalar(
                    select(ConversationState.ticket_id).where(
                        ConversationState.sender_id == sender_id
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Could not read state of {sender_id}: {exc}") from exc

    def set(self, sender_id: str, ticket_id: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                state = session.get(ConversationState, sender_id)
                if state is None:
                    session.add(ConversationState(sender_id=sender_id, ticket_id=ticket_id))
                else:
                    state.ticket_id = ticket_id
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Could not write state of {sender_id}: {exc}") from exc

    def delete(self, sender_id: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                state = session.get(ConversationState, sender_id)
                if state is None:
                    return False
                session.delete(state)
                return True
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Could not delete state of {sender_id}: {exc}") from exc
