"""Ticket tracker clients."""

from .base import CommentRef, Ticket, TicketClient
from .trello import TrelloTicketClient, card_url

__all__ = ["CommentRef", "Ticket", "TicketClient", "TrelloTicketClient", "card_url"]
