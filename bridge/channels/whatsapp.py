"""WhatsApp Cloud API transport."""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import requests

from ..config import BridgeSettings
from ..conversations.models import (
    AudioPayload,
    ChannelInfo,
    Contact,
    DocumentPayload,
    ImagePayload,
    InboundMessage,
    MediaRef,
    Payload,
    TextPayload,
    UnsupportedPayload,
    VideoPayload,
    canonical_address,
    phone_number,
)
from ..errors import TransportError
from .base import ChatTransport

GRAPH_URL = "https://graph.facebook.com"


class WhatsAppCloudTransport(ChatTransport):
    """Talk to WhatsApp through the Graph API of a business phone number."""

    channel_name = "whatsapp"

    def __init__(
        self,
        *,
        access_token: str,
        phone_number_id: str,
        app_secret: str | None = None,
        api_version: str = "v21.0",
        session: requests.Session | None = None,
        timeout: float = 30.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.phone_number_id = phone_number_id
        self._app_secret = app_secret
        self._base_url = f"{GRAPH_URL}/{api_version}"
        self._timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})
        self._contacts: dict[str, Contact] = {}

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> WhatsAppCloudTransport:
        return cls(
            access_token=settings.whatsapp_access_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            app_secret=settings.whatsapp_app_secret,
            api_version=settings.whatsapp_api_version,
        )

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def verify_signature(self, body: bytes, headers: Mapping[str, str]) -> bool:
        if not self._app_secret:
            return True
        received = headers.get("X-Hub-Signature-256")
        if not received:
            return False
        digest = hmac.new(
            self._app_secret.encode("utf-8"), body, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(received, f"sha256={digest}")

    def parse_incoming(self, payload: Mapping[str, Any]) -> Iterable[InboundMessage]:
        for entry in payload.get("entry", []):
            for change in entry.get("changes", []):
                value = change.get("value", {})
                own_number = (value.get("metadata") or {}).get("display_phone_number", "")
                own_number = "".join(ch for ch in own_number if ch.isdigit())
                contacts = {c.get("wa_id"): c for c in value.get("contacts", [])}
                for message in value.get("messages", []):
                    sender_id = canonical_address(str(message.get("from") or ""))
                    if not sender_id:
                        continue
                    number = phone_number(sender_id)
                    profile = (contacts.get(sender_id) or {}).get("profile") or {}
                    push_name = profile.get("name")
                    self._remember_contact(number, push_name)
                    group_id = message.get("group_id")
                    yield InboundMessage(
                        message_id=str(message.get("id") or ""),
                        sender_id=sender_id,
                        chat_id=str(group_id or sender_id),
                        sender_number=number,
                        payload=self._parse_payload(message),
                        push_name=push_name,
                        is_from_self=bool(own_number) and number == own_number,
                        is_group=bool(group_id),
                        timestamp=self._parse_timestamp(message.get("timestamp")),
                    )

    def _remember_contact(self, number: str, push_name: str | None) -> None:
        known = self._contacts.get(number)
        if known is None or (push_name and known.push_name != push_name):
            self._contacts[number] = Contact(number=number, push_name=push_name)

    @staticmethod
    def _media(data: Mapping[str, Any]) -> MediaRef:
        return MediaRef(
            media_id=str(data.get("id") or ""),
            mime_type=data.get("mime_type") or "",
            url=data.get("url"),
        )

    def _parse_payload(self, message: Mapping[str, Any]) -> Payload:
        message_type = message.get("type")
        data = message.get(message_type, {}) if message_type else {}
        if message_type == "text":
            return TextPayload(conversation=data.get("body", ""))
        if message_type == "image":
            return ImagePayload(self._media(data), caption=data.get("caption", ""))
        if message_type == "video":
            return VideoPayload(self._media(data), caption=data.get("caption", ""))
        if message_type == "audio":
            return AudioPayload(self._media(data))
        if message_type == "document":
            return DocumentPayload(self._media(data), file_name=data.get("filename", ""))
        if message_type == "button":
            return TextPayload(extended_text=data.get("text", ""))
        if message_type == "interactive":
            reply = data.get("button_reply") or data.get("list_reply") or {}
            return TextPayload(extended_text=reply.get("title", ""))
        return UnsupportedPayload(kind=str(message_type))

    @staticmethod
    def _parse_timestamp(raw: Any) -> datetime:
        if raw:
            try:
                return datetime.fromtimestamp(int(raw), tz=timezone.utc)
            except (ValueError, TypeError):
                pass
        return datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        return response

    def _messages_url(self) -> str:
        return f"{self._base_url}/{self.phone_number_id}/messages"

    def mark_read(
        self,
        message_ids: Sequence[str],
        timestamp: datetime,
        chat_id: str,
        sender_id: str,
    ) -> None:
        for message_id in message_ids:
            self._request(
                "POST",
                self._messages_url(),
                json={
                    "messaging_product": "whatsapp",
                    "status": "read",
                    "message_id": message_id,
                },
            )

    def download(self, media: MediaRef) -> bytes:
        url = media.url
        if not url:
            response = self._request("GET", f"{self._base_url}/{media.media_id}")
            try:
                url = response.json().get("url")
            except (ValueError, AttributeError) as exc:
                raise TransportError(
                    f"Media {media.media_id} lookup returned an unreadable body"
                ) from exc
            if not url:
                raise TransportError(f"Media {media.media_id} has no download URL")
        return self._request("GET", url).content

    def send_text(self, chat_id: str, text: str) -> None:
        address = canonical_address(chat_id)
        number = phone_number(address)
        is_group = address.endswith("@g.us") or not number.isdigit()
        recipient_type = "group" if is_group else "individual"
        self._request(
            "POST",
            self._messages_url(),
            json={
                "messaging_product": "whatsapp",
                "recipient_type": recipient_type,
                "to": number if recipient_type == "individual" else address,
                "type": "text",
                "text": {"body": text},
            },
        )

    def resolve_contact(self, sender_id: str) -> Contact | None:
        return self._contacts.get(phone_number(sender_id))

    def list_joined_channels(self) -> list[ChannelInfo]:
        response = self._request(
            "GET", f"{self._base_url}/{self.phone_number_id}/groups"
        )
        return [
            ChannelInfo(name=group.get("subject") or "", chat_id=str(group.get("id")))
            for group in response.json().get("data", [])
        ]
