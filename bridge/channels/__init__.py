"""Chat transport registry."""

from __future__ import annotations

from .base import ChatTransport
from .whatsapp import WhatsAppCloudTransport

_REGISTRY: dict[str, type[ChatTransport]] = {}


def register_transport(transport: type[ChatTransport]) -> None:
    """Register a transport class in the global registry."""
    _REGISTRY[transport.channel_name] = transport


def get_transport(name: str) -> type[ChatTransport]:
    """Retrieve a transport class for ``name`` or raise ``KeyError``."""
    normalized = name.lower()
    if normalized not in _REGISTRY:
        raise KeyError(f"Channel '{name}' is not configured")
    return _REGISTRY[normalized]


register_transport(WhatsAppCloudTransport)

__all__ = [
    "ChatTransport",
    "WhatsAppCloudTransport",
    "get_transport",
    "register_transport",
]
