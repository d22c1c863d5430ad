import logging
import pathlib
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI, Request

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from bridge.app_logging import init_logging
from bridge.channels.base import ChatTransport
from bridge.conversations.models import (
    ChannelInfo,
    Contact,
    InboundMessage,
    MediaRef,
    TextPayload,
)
from bridge.conversations.service import BridgeService
from bridge.conversations.state import InMemoryConversationStateStore
from bridge.errors import (
    AttachFailed,
    CommentFailed,
    FieldUpdateFailed,
    StoreUnavailable,
    TicketCreateFailed,
    TicketNotFound,
    TransportError,
)
from bridge.tickets.base import CommentRef, Ticket

OPERATOR_CHAT = "120363000000000000@g.us"


class FakeTransport(ChatTransport):
    """In-memory transport recording every outbound call."""

    channel_name = "fake"

    def __init__(self, events: list | None = None) -> None:
        self.events = events if events is not None else []
        self.sent: list[tuple[str, str]] = []
        self.read: list[list[str]] = []
        self.media: dict[str, bytes] = {}
        self.downloads: list[str] = []
        self.contacts: dict[str, Contact] = {}
        self.channels: list[ChannelInfo] = []
        self.fail_download = False
        self.fail_mark_read = False

    def parse_incoming(self, payload):
        return payload.get("messages", [])

    def mark_read(self, message_ids, timestamp, chat_id, sender_id):
        self.events.append(("mark_read", list(message_ids)))
        if self.fail_mark_read:
            raise TransportError("read receipts unavailable")
        self.read.append(list(message_ids))

    def download(self, media: MediaRef) -> bytes:
        self.events.append(("download", media.media_id))
        self.downloads.append(media.media_id)
        if self.fail_download:
            raise TransportError("media expired")
        return self.media.get(media.media_id, b"payload")

    def send_text(self, chat_id: str, text: str) -> None:
        self.events.append(("send_text", chat_id, text))
        self.sent.append((chat_id, text))

    def resolve_contact(self, sender_id: str) -> Contact | None:
        return self.contacts.get(sender_id)

    def list_joined_channels(self) -> list[ChannelInfo]:
        return list(self.channels)

    def sent_to(self, chat_id: str) -> list[str]:
        return [text for chat, text in self.sent if chat == chat_id]


@dataclass
class FakeTicketClient:
    """Ticket tracker double; ``fail`` names the operations that should raise."""

    events: list = field(default_factory=list)
    fail: set[str] = field(default_factory=set)
    tickets: dict[str, Ticket] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    create_delay: float = 0.0
    _seq: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def _record(self, op: str, *args: Any) -> None:
        self.events.append((op,) + args)
        self.calls.append((op, args))

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def args(self, op: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == op]

    def add(self, ticket_id: str) -> Ticket:
        ticket = Ticket(
            id=ticket_id,
            short_link=f"sl-{ticket_id}",
            url=f"https://trello.com/c/sl-{ticket_id}",
        )
        self.tickets[ticket_id] = ticket
        return ticket

    def create_ticket(self, title, description, board_id, list_id):
        self._record("create_ticket", title, description, board_id, list_id)
        if self.create_delay:
            time.sleep(self.create_delay)
        if "create_ticket" in self.fail:
            raise TicketCreateFailed("board rejected the card")
        with self._lock:
            self._seq += 1
            ticket_id = f"T{self._seq}"
        return self.add(ticket_id)

    def set_custom_field(self, ticket_id, sender_id):
        self._record("set_custom_field", ticket_id, sender_id)
        if "set_custom_field" in self.fail:
            raise FieldUpdateFailed("custom field missing")

    def add_comment(self, ticket_id, text):
        self._record("add_comment", ticket_id, text)
        if "add_comment" in self.fail:
            raise CommentFailed("comment rejected")
        return CommentRef(
            id=f"C-{ticket_id}",
            ticket_id=ticket_id,
            url=self.tickets[ticket_id].url,
        )

    def attach_file(self, ticket_id, local_path, display_name):
        self._record("attach_file", ticket_id, local_path, display_name)
        if "attach_file" in self.fail:
            raise AttachFailed("upload rejected")

    def fetch_ticket(self, ticket_id):
        self._record("fetch_ticket", ticket_id)
        if "fetch_ticket" in self.fail or ticket_id not in self.tickets:
            raise TicketNotFound(f"{ticket_id} not found")
        return self.tickets[ticket_id]


class RecordingStore(InMemoryConversationStateStore):
    def __init__(self, events: list, initial=None) -> None:
        super().__init__(initial)
        self.events = events
        self.unavailable = False
        self.sets: list[tuple[str, str]] = []

    def get(self, sender_id):
        if self.unavailable:
            raise StoreUnavailable("database is down")
        return super().get(sender_id)

    def set(self, sender_id, ticket_id):
        self.events.append(("store_set", sender_id, ticket_id))
        self.sets.append((sender_id, ticket_id))
        super().set(sender_id, ticket_id)


def make_message(
    sender_id: str = "4915100000001",
    payload=None,
    *,
    message_id: str = "wamid.1",
    **overrides: Any,
) -> InboundMessage:
    values = {
        "message_id": message_id,
        "sender_id": sender_id,
        "chat_id": sender_id,
        "sender_number": sender_id.partition("@")[0],
        "payload": payload if payload is not None else TextPayload("need help"),
    }
    values.update(overrides)
    return InboundMessage(**values)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def transport(events) -> FakeTransport:
    return FakeTransport(events)


@pytest.fixture
def tickets(events) -> FakeTicketClient:
    return FakeTicketClient(events=events)


@pytest.fixture
def store(events) -> RecordingStore:
    return RecordingStore(events)


@pytest.fixture
def bridge_factory(transport, tickets, store, tmp_path):
    def _create(**overrides: Any) -> BridgeService:
        options = {
            "board_id": "board-1",
            "list_id": "list-new",
            "operator_chat": OPERATOR_CHAT,
            "tmp_dir": str(tmp_path / "media"),
        }
        options.update(overrides)
        return BridgeService(transport, tickets, store, **options)

    return _create


@pytest.fixture
def bridge(bridge_factory) -> BridgeService:
    return bridge_factory()


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        monkeypatch.setenv("LOG_CONSOLE", "false")
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def clean_loggers():
    for name in ("bridge", "uvicorn.access"):
        logging.getLogger(name).handlers.clear()
    yield
    for name in ("bridge", "uvicorn.access"):
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
