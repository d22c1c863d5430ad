"""Base abstractions for chat transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..conversations.models import ChannelInfo, Contact, InboundMessage, MediaRef

if TYPE_CHECKING:
    from ..config import BridgeSettings


class ChatTransport(ABC):
    """Abstract base class encapsulating chat-platform behaviour."""

    #: Lowercase channel identifier used in routes and configuration.
    channel_name: str

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> ChatTransport:
        """Build the transport from application settings."""

        raise NotImplementedError(f"{cls.__name__} cannot be built from settings")

    @abstractmethod
    def parse_incoming(self, payload: Mapping[str, Any]) -> Iterable[InboundMessage]:
        """Convert a webhook payload into inbound messages."""

    def verify_signature(self, body: bytes, headers: Mapping[str, str]) -> bool:
        """Validate authenticity of the webhook payload.

        Transports can override this to implement signature checks. The
        default implementation returns ``True``.
        """

        return True

    @abstractmethod
    def mark_read(
        self,
        message_ids: Sequence[str],
        timestamp: datetime,
        chat_id: str,
        sender_id: str,
    ) -> None:
        """Send read receipts for ``message_ids``."""

    @abstractmethod
    def download(self, media: MediaRef) -> bytes:
        """Return the raw bytes of an attachment."""

    @abstractmethod
    def send_text(self, chat_id: str, text: str) -> None:
        """Send a plain text message to ``chat_id``."""

    def resolve_contact(self, sender_id: str) -> Contact | None:
        """Look up display information for a sender; ``None`` when unknown."""

        return None

    def list_joined_channels(self) -> list[ChannelInfo]:
        """List group chats the bridge account belongs to (diagnostics only)."""

        return []
