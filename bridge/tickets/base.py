"""Ticket tracker abstractions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Ticket:
    id: str
    short_link: str = ""
    url: str = ""
    name: str = ""


@dataclass(frozen=True)
class CommentRef:
    id: str
    ticket_id: str
    url: str = ""


class TicketClient(Protocol):
    """Operations the bridge needs from a ticket tracker."""

    def create_ticket(
        self, title: str, description: str, board_id: str, list_id: str
    ) -> Ticket: ...

    def set_custom_field(self, ticket_id: str, sender_id: str) -> None: ...

    def add_comment(self, ticket_id: str, text: str) -> CommentRef: ...

    def attach_file(self, ticket_id: str, local_path: str, display_name: str) -> None: ...

    def fetch_ticket(self, ticket_id: str) -> Ticket: ...
