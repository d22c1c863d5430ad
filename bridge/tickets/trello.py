"""Trello implementation of :class:`~bridge.tickets.base.TicketClient`."""

from __future__ import annotations

import logging
from typing import Any

import requests

from ..errors import (
    AttachFailed,
    CommentFailed,
    FieldUpdateFailed,
    TicketCreateFailed,
    TicketError,
    TicketNotFound,
)
from .base import CommentRef, Ticket

TRELLO_API_URL = "https://api.trello.com/1"
TRELLO_CARD_URL = "https://trello.com/c/"


def card_url(short_link: str) -> str:
    return TRELLO_CARD_URL + short_link


class TrelloTicketClient:
    """Create and update Trello cards through the REST API.

    The custom field holding the sender reference and the list receiving new
    cards can be configured by id, or looked up by name on the board the
    first time they are needed.
    """

    def __init__(
        self,
        *,
        api_key: str,
        api_token: str,
        board_id: str,
        custom_field_id: str | None = None,
        custom_field_name: str = "WhatsApp",
        session: requests.Session | None = None,
        base_url: str = TRELLO_API_URL,
        timeout: float = 30.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.board_id = board_id
        self._auth = {"key": api_key, "token": api_token}
        self._custom_field_id = custom_field_id
        self._custom_field_name = custom_field_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        error: type[TicketError],
        *,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = dict(self._auth)
        query.update(params or {})
        try:
            response = self.session.request(
                method, url, params=query, timeout=self._timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise error(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 404 and error is TicketNotFound:
            raise TicketNotFound(f"{path} does not exist")
        if response.status_code >= 400:
            raise error(
                f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _ticket(payload: dict[str, Any]) -> Ticket:
        short_link = payload.get("shortLink") or ""
        return Ticket(
            id=str(payload.get("id") or ""),
            short_link=short_link,
            url=payload.get("shortUrl") or (card_url(short_link) if short_link else ""),
            name=payload.get("name") or "",
        )

    def resolve_list_id(self, name: str) -> str:
        """Return the id of the open list called ``name`` on the board."""

        lists = self._request(
            "GET", f"/boards/{self.board_id}/lists", TicketError, params={"filter": "open"}
        )
        for item in lists:
            if item.get("name", "").lower() == name.lower():
                return item["id"]
        raise TicketError(f"List '{name}' not found on board {self.board_id}")

    def _resolve_custom_field_id(self) -> str:
        if self._custom_field_id:
            return self._custom_field_id
        fields = self._request(
            "GET", f"/boards/{self.board_id}/customFields", FieldUpdateFailed
        )
        for item in fields:
            if item.get("name", "").lower() == self._custom_field_name.lower():
                self._custom_field_id = item["id"]
                return self._custom_field_id
        raise FieldUpdateFailed(
            f"Custom field '{self._custom_field_name}' not found on board {self.board_id}"
        )

    # ------------------------------------------------------------------
    # Ticket operations
    # ------------------------------------------------------------------

    def create_ticket(
        self, title: str, description: str, board_id: str, list_id: str
    ) -> Ticket:
        payload = self._request(
            "POST",
            "/cards",
            TicketCreateFailed,
            params={"idList": list_id, "name": title, "desc": description, "pos": "bottom"},
        )
        ticket = self._ticket(payload)
        if not ticket.id:
            raise TicketCreateFailed("Trello returned a card without id")
        self.logger.info("Created card %s on board %s", ticket.id, board_id)
        return ticket

    def set_custom_field(self, ticket_id: str, sender_id: str) -> None:
        field_id = self._resolve_custom_field_id()
        self._request(
            "PUT",
            f"/cards/{ticket_id}/customField/{field_id}/item",
            FieldUpdateFailed,
            json={"value": {"text": sender_id}},
        )

    def add_comment(self, ticket_id: str, text: str) -> CommentRef:
        payload = self._request(
            "POST", f"/cards/{ticket_id}/actions/comments", CommentFailed, params={"text": text}
        )
        card = (payload.get("data") or {}).get("card") or {}
        short_link = card.get("shortLink") or ""
        return CommentRef(
            id=str(payload.get("id") or ""),
            ticket_id=str(card.get("id") or ticket_id),
            url=card_url(short_link) if short_link else "",
        )

    def attach_file(self, ticket_id: str, local_path: str, display_name: str) -> None:
        try:
            with open(local_path, "rb") as handle:
                self._request(
                    "POST",
                    f"/cards/{ticket_id}/attachments",
                    AttachFailed,
                    data={"name": display_name},
                    files={"file": (display_name, handle)},
                )
        except OSError as exc:
            raise AttachFailed(f"Could not read {local_path}: {exc}") from exc

    def fetch_ticket(self, ticket_id: str) -> Ticket:
        payload = self._request(
            "GET",
            f"/cards/{ticket_id}",
            TicketNotFound,
            params={"fields": "id,name,shortLink,shortUrl"},
        )
        return self._ticket(payload)
