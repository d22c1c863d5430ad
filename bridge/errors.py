"""Exception hierarchy shared by the bridge components."""

from __future__ import annotations


class BridgeError(RuntimeError):
    """Base class for all errors raised by the bridge."""


class UnsupportedMessageType(BridgeError):
    """Raised when an inbound message carries neither text nor a known attachment."""


class AttachmentError(BridgeError):
    """Raised when an attachment could not be prepared for forwarding."""


class UnresolvedMimeType(AttachmentError):
    """Raised when no file extension is registered for a content type."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"No extension registered for content type '{mime_type}'")
        self.mime_type = mime_type


class AttachmentDownloadError(AttachmentError):
    """Raised when the transport failed to hand out the attachment bytes."""


class AttachmentStorageError(AttachmentError):
    """Raised when the attachment could not be written to a temporary file."""


class TicketError(BridgeError):
    """Base class for ticket tracker failures."""


class TicketCreateFailed(TicketError):
    """Raised when the tracker rejected a new ticket."""


class FieldUpdateFailed(TicketError):
    """Raised when the sender reference could not be stored on a ticket."""


class CommentFailed(TicketError):
    """Raised when a comment could not be added to a ticket."""


class AttachFailed(TicketError):
    """Raised when a file could not be attached to a ticket."""


class TicketNotFound(TicketError):
    """Raised when a stored ticket could not be fetched."""


class StoreUnavailable(BridgeError):
    """Raised when the conversation state store cannot be reached."""


class TransportError(BridgeError):
    """Raised when the chat transport rejected a request."""


__all__ = [
    "AttachFailed",
    "AttachmentDownloadError",
    "AttachmentError",
    "AttachmentStorageError",
    "BridgeError",
    "CommentFailed",
    "FieldUpdateFailed",
    "StoreUnavailable",
    "TicketCreateFailed",
    "TicketError",
    "TicketNotFound",
    "TransportError",
    "UnresolvedMimeType",
    "UnsupportedMessageType",
]
