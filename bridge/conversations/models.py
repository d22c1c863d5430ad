"""Domain models used by the bridge service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union


@dataclass(frozen=True)
class MediaRef:
    """Reference to downloadable media held by the chat platform."""

    media_id: str
    mime_type: str
    url: str | None = None


@dataclass(frozen=True)
class TextPayload:
    conversation: str = ""
    extended_text: str | None = None


@dataclass(frozen=True)
class ImagePayload:
    media: MediaRef
    caption: str = ""


@dataclass(frozen=True)
class AudioPayload:
    media: MediaRef


@dataclass(frozen=True)
class VideoPayload:
    media: MediaRef
    caption: str = ""


@dataclass(frozen=True)
class DocumentPayload:
    media: MediaRef
    file_name: str = ""


@dataclass(frozen=True)
class UnsupportedPayload:
    kind: str


Payload = Union[
    TextPayload,
    ImagePayload,
    AudioPayload,
    VideoPayload,
    DocumentPayload,
    UnsupportedPayload,
]


@dataclass(frozen=True)
class InboundMessage:
    """Uniform representation of a message delivered by the chat transport.

    ``sender_id`` is the canonical, device independent address of the sender
    and is used as the conversation state key. ``chat_id`` is where replies
    go; for one-to-one chats both usually point to the same person.
    """

    message_id: str
    sender_id: str
    chat_id: str
    sender_number: str
    payload: Payload
    push_name: str | None = None
    is_from_self: bool = False
    is_group: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def conversation_text(self) -> str:
        if isinstance(self.payload, TextPayload):
            return self.payload.conversation
        return ""

    @property
    def extended_text(self) -> str | None:
        if isinstance(self.payload, TextPayload):
            return self.payload.extended_text
        return None


@dataclass(frozen=True)
class Extraction:
    """Outcome of running the media extractor on a message."""

    has_attachment: bool
    path: str | None = None
    name: str | None = None
    caption: str = ""


@dataclass(frozen=True)
class Contact:
    number: str
    business_name: str | None = None
    full_name: str | None = None
    push_name: str | None = None


@dataclass(frozen=True)
class ChannelInfo:
    name: str
    chat_id: str


def canonical_address(address: str) -> str:
    """Strip the device part from a JID (``user:device@server`` -> ``user@server``)."""

    user, sep, server = address.partition("@")
    user = user.split(":", 1)[0].split(".", 1)[0]
    return f"{user}{sep}{server}"


def phone_number(address: str) -> str:
    """Return the user part of an address, i.e. the phone number for WhatsApp."""

    return canonical_address(address).partition("@")[0]
