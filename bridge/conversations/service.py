"""Bridging engine: turns inbound chat messages into tickets and comments."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Tuple

from ..errors import (
    AttachmentError,
    StoreUnavailable,
    TicketError,
    TransportError,
    UnsupportedMessageType,
)
from ..tickets.base import TicketClient
from .media import MediaExtractor
from .messages import BridgeMessages, contact_url
from .models import Extraction, InboundMessage
from .state import ConversationStateStore

if TYPE_CHECKING:
    from ..channels.base import ChatTransport

logger = logging.getLogger(__name__)


class HandlingOutcome(str, Enum):
    IGNORED = "ignored"
    UNSUPPORTED = "unsupported"
    ATTACHMENT_FAILED = "attachment_failed"
    TICKET_CREATED = "ticket_created"
    COMMENT_ADDED = "comment_added"
    FAILED = "failed"


def resolve_text(message: InboundMessage, extraction: Extraction) -> str:
    """Pick the text forwarded for ``message``.

    The attachment caption wins, then the plain conversation text, then the
    body of an extended text message.
    """

    if extraction.caption:
        return extraction.caption
    if message.conversation_text:
        return message.conversation_text
    return message.extended_text or ""


class BridgeService:
    """Coordinates extraction, conversation state and the ticket tracker.

    State is rebuilt from the store for every message: a sender without an
    entry gets a new ticket, a sender with an entry gets a comment on the
    stored ticket. Every failure ends the handling of the current message
    with a generic reply to the sender and, when an operator chat is
    configured, a notice carrying the sender's contact link.
    """

    def __init__(
        self,
        transport: ChatTransport,
        tickets: TicketClient,
        store: ConversationStateStore,
        *,
        board_id: str,
        list_id: str,
        operator_chat: Optional[str] = None,
        extractor: Optional[MediaExtractor] = None,
        messages: Optional[BridgeMessages] = None,
        tmp_dir: str = "./tmp",
        delete_attachments: bool = False,
    ) -> None:
        self._transport = transport
        self._tickets = tickets
        self._store = store
        self._board_id = board_id
        self._list_id = list_id
        self._operator_chat = operator_chat or None
        self._messages = messages or BridgeMessages()
        self._extractor = extractor or MediaExtractor(
            transport, tmp_dir=tmp_dir, messages=self._messages
        )
        self._delete_attachments = delete_attachments
        # sender id -> (lock, number of handlers holding or waiting on it)
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Incoming message processing

    def handle_message(self, message: InboundMessage) -> HandlingOutcome:
        """Forward ``message`` to the tracker and acknowledge it to the sender."""

        if message.is_group or message.is_from_self:
            return HandlingOutcome.IGNORED

        with self._sender_lock(message.sender_id):
            try:
                outcome = self._handle(message)
            except Exception:
                logger.exception("Unexpected error while handling %s", message.message_id)
                self._reply(message, self._messages.ticket_failed)
                outcome = HandlingOutcome.FAILED
        logger.info(
            "Handled message %s from %s: %s",
            message.message_id,
            message.sender_id,
            outcome.value,
        )
        return outcome

    def _handle(self, message: InboundMessage) -> HandlingOutcome:
        self._mark_read(message)
        try:
            extraction = self._extractor.extract(message)
        except UnsupportedMessageType as exc:
            logger.info("%s", exc)
            return HandlingOutcome.UNSUPPORTED
        except AttachmentError as exc:
            logger.error("Attachment of %s could not be prepared: %s", message.message_id, exc)
            self._reply(message, self._messages.attachment_failed)
            return HandlingOutcome.ATTACHMENT_FAILED

        text = resolve_text(message, extraction)
        try:
            ticket_id = self._lookup(message.sender_id)
            if ticket_id is None:
                return self._create_ticket(message, text, extraction)
            return self._append_message(message, ticket_id, text, extraction)
        finally:
            if self._delete_attachments and extraction.path:
                self._discard(extraction.path)

    # ------------------------------------------------------------------
    # Paths

    def _create_ticket(
        self, message: InboundMessage, text: str, extraction: Extraction
    ) -> HandlingOutcome:
        title = self.display_name(message)
        try:
            ticket = self._tickets.create_ticket(
                title, text, self._board_id, self._list_id
            )
        except TicketError as exc:
            logger.error("Error creating ticket for %s: %s", message.sender_id, exc)
            return self._fail_create(message)

        try:
            self._tickets.set_custom_field(ticket.id, message.sender_id)
            if extraction.has_attachment:
                self._tickets.attach_file(ticket.id, extraction.path, extraction.name)
        except TicketError as exc:
            logger.error(
                "Ticket %s for %s was created but could not be completed: %s",
                ticket.id,
                message.sender_id,
                exc,
            )
            return self._fail_create(message)

        try:
            self._store.set(message.sender_id, ticket.id)
        except StoreUnavailable:
            logger.exception("Could not remember ticket %s for %s", ticket.id, message.sender_id)

        self._notify_operator(
            self._messages.operator_ticket_created.format(
                number=message.sender_number, url=ticket.url
            )
        )
        self._reply(message, self._messages.ticket_created)
        return HandlingOutcome.TICKET_CREATED

    def _append_message(
        self,
        message: InboundMessage,
        ticket_id: str,
        text: str,
        extraction: Extraction,
    ) -> HandlingOutcome:
        try:
            ticket = self._tickets.fetch_ticket(ticket_id)
        except TicketError as exc:
            logger.error("Error fetching ticket %s for %s: %s", ticket_id, message.sender_id, exc)
            return self._fail_append(message)

        body = self._messages.comment_prefix + text
        if extraction.has_attachment:
            body += self._messages.new_attachment_marker
        try:
            comment = self._tickets.add_comment(ticket.id, body)
            if extraction.has_attachment:
                self._tickets.attach_file(ticket.id, extraction.path, extraction.name)
        except TicketError as exc:
            logger.error("Error adding comment to ticket %s: %s", ticket.id, exc)
            return self._fail_append(message)

        self._notify_operator(
            self._messages.operator_comment_added.format(
                number=message.sender_number, url=comment.url or ticket.url
            )
        )
        self._reply(message, self._messages.comment_added)
        return HandlingOutcome.COMMENT_ADDED

    def _fail_create(self, message: InboundMessage) -> HandlingOutcome:
        self._notify_operator(
            self._messages.operator_ticket_failed.format(
                contact_url=contact_url(message.sender_number)
            )
        )
        self._reply(message, self._messages.ticket_failed)
        return HandlingOutcome.FAILED

    def _fail_append(self, message: InboundMessage) -> HandlingOutcome:
        self._notify_operator(
            self._messages.operator_comment_failed.format(
                contact_url=contact_url(message.sender_number)
            )
        )
        self._reply(message, self._messages.comment_failed)
        return HandlingOutcome.FAILED

    # ------------------------------------------------------------------
    # Helpers

    def display_name(self, message: InboundMessage) -> str:
        """Build a ticket title from the sender's contact information."""

        number = message.sender_number
        contact = None
        try:
            contact = self._transport.resolve_contact(message.sender_id)
        except TransportError as exc:
            logger.warning("Contact lookup for %s failed: %s", message.sender_id, exc)
        if contact is not None:
            if contact.business_name:
                return f"{contact.business_name} ({number})"
            if contact.full_name:
                return f"{contact.full_name} ({number})"
        push_name = (contact.push_name if contact else None) or message.push_name
        if push_name:
            return f"{push_name} ({number})"
        return number

    def _lookup(self, sender_id: str) -> Optional[str]:
        try:
            return self._store.get(sender_id)
        except StoreUnavailable:
            logger.exception("State store unavailable, treating %s as a new conversation", sender_id)
            return None

    @contextmanager
    def _sender_lock(self, sender_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._locks.get(sender_id) or (threading.Lock(), 0)
            self._locks[sender_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[sender_id]
                if users <= 1:
                    del self._locks[sender_id]
                else:
                    self._locks[sender_id] = (lock, users - 1)

    def _mark_read(self, message: InboundMessage) -> None:
        try:
            self._transport.mark_read(
                [message.message_id], message.timestamp, message.chat_id, message.sender_id
            )
        except TransportError as exc:
            logger.warning("Could not mark %s as read: %s", message.message_id, exc)

    def _reply(self, message: InboundMessage, text: str) -> None:
        try:
            self._transport.send_text(message.chat_id, text)
        except TransportError:
            logger.exception("Failed to send reply to %s", message.chat_id)

    def _notify_operator(self, text: str) -> None:
        if not self._operator_chat:
            return
        try:
            self._transport.send_text(self._operator_chat, text)
        except TransportError:
            logger.exception("Failed to notify operator chat %s", self._operator_chat)

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except OSError as exc:
            logger.warning("Could not remove attachment %s: %s", path, exc)

    # ------------------------------------------------------------------
    # Operator actions

    def reset_conversation(self, sender_id: str) -> bool:
        """Forget the open ticket of ``sender_id`` so the next message opens a new one."""

        with self._sender_lock(sender_id):
            removed = self._store.delete(sender_id)
        if removed:
            logger.info("Reset conversation state of %s", sender_id)
        return removed

    def log_joined_channels(self) -> None:
        """Log the joined group chats when no operator chat is configured."""

        if self._operator_chat:
            return
        try:
            channels = self._transport.list_joined_channels()
        except TransportError as exc:
            logger.warning("Failed to get joined groups: %s", exc)
            return
        logger.info("No operator chat configured. Joined groups:")
        for channel in channels:
            logger.info("  %s %s", channel.name, channel.chat_id)
