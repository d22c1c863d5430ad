"""Classify inbound payloads and stage their attachments on disk."""

from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
from typing import TYPE_CHECKING

from ..errors import (
    AttachmentDownloadError,
    AttachmentStorageError,
    TransportError,
    UnresolvedMimeType,
    UnsupportedMessageType,
)
from .messages import BridgeMessages
from .models import (
    AudioPayload,
    DocumentPayload,
    Extraction,
    ImagePayload,
    InboundMessage,
    MediaRef,
    TextPayload,
    VideoPayload,
)

if TYPE_CHECKING:
    from ..channels.base import ChatTransport

logger = logging.getLogger(__name__)

TEMP_PREFIX = "msg-media"


class MediaExtractor:
    """Turn an inbound message into an :class:`Extraction`.

    Attachments are downloaded through the transport and written to a
    uniquely named file inside ``tmp_dir``. Files are left in place after
    extraction; the caller decides whether to remove them.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        tmp_dir: str = "./tmp",
        messages: BridgeMessages | None = None,
        mime_table: mimetypes.MimeTypes | None = None,
    ) -> None:
        self._transport = transport
        self._tmp_dir = tmp_dir
        self._messages = messages or BridgeMessages()
        self._mime_table = mime_table

    def extension_for(self, mime_type: str) -> str:
        """Return the last registered extension for ``mime_type``."""

        base_type = mime_type.split(";", 1)[0].strip().lower()
        if not base_type:
            raise UnresolvedMimeType(mime_type)
        if self._mime_table is not None:
            candidates = self._mime_table.guess_all_extensions(base_type)
        else:
            candidates = mimetypes.guess_all_extensions(base_type)
        if not candidates:
            raise UnresolvedMimeType(mime_type)
        return candidates[-1]

    def classify(self, message: InboundMessage) -> tuple[MediaRef | None, str, str]:
        """Return ``(media, suggested_name, caption)`` without touching the disk."""

        payload = message.payload
        if isinstance(payload, VideoPayload):
            ext = self.extension_for(payload.media.mime_type)
            return payload.media, "video" + ext, payload.caption
        if isinstance(payload, AudioPayload):
            ext = self.extension_for(payload.media.mime_type)
            return payload.media, "audio" + ext, ""
        if isinstance(payload, DocumentPayload):
            ext = self.extension_for(payload.media.mime_type)
            return payload.media, payload.file_name or "document" + ext, ""
        if isinstance(payload, ImagePayload):
            ext = self.extension_for(payload.media.mime_type)
            return payload.media, "image" + ext, payload.caption
        if isinstance(payload, TextPayload) and (
            payload.conversation or payload.extended_text is not None
        ):
            return None, "", ""
        raise UnsupportedMessageType(
            f"Message {message.message_id} from {message.sender_id} has an unsupported type"
        )

    def extract(self, message: InboundMessage) -> Extraction:
        try:
            media, name, caption = self.classify(message)
        except UnsupportedMessageType:
            self._notify_unsupported(message)
            raise
        if media is None:
            return Extraction(has_attachment=False)
        try:
            data = self._transport.download(media)
        except TransportError as exc:
            raise AttachmentDownloadError(
                f"Could not download media {media.media_id}: {exc}"
            ) from exc
        path = self._save(data)
        logger.debug("Stored attachment %s of %s at %s", name, message.message_id, path)
        return Extraction(has_attachment=True, path=path, name=name, caption=caption)

    def _notify_unsupported(self, message: InboundMessage) -> None:
        try:
            self._transport.send_text(message.chat_id, self._messages.unsupported_type)
        except TransportError:
            logger.exception("Failed to notify %s about unsupported message", message.sender_id)

    def _save(self, data: bytes) -> str:
        try:
            os.makedirs(self._tmp_dir, exist_ok=True)
            fd, path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self._tmp_dir)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise AttachmentStorageError(f"Could not store attachment: {exc}") from exc
        return path
