"""Pydantic schemas for the webhook and conversation APIs."""

from __future__ import annotations

from pydantic import BaseModel


class WebhookAccepted(BaseModel):
    accepted: int


class ConversationReset(BaseModel):
    sender_id: str
    reset: bool
