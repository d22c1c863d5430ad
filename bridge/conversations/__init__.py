"""Conversation flow: extraction, state and the bridging service."""

from .media import MediaExtractor
from .messages import BridgeMessages, messages_for
from .models import Extraction, InboundMessage
from .service import BridgeService, HandlingOutcome
from .state import (
    ConversationStateStore,
    InMemoryConversationStateStore,
    SqlConversationStateStore,
)

__all__ = [
    "BridgeMessages",
    "BridgeService",
    "ConversationStateStore",
    "Extraction",
    "HandlingOutcome",
    "InMemoryConversationStateStore",
    "InboundMessage",
    "MediaExtractor",
    "SqlConversationStateStore",
    "messages_for",
]
