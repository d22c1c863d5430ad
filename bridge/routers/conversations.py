"""Operator routes for managing conversation state."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, HTTPException, Request, status

from ..conversations import schemas
from ..conversations.service import BridgeService
from ..errors import StoreUnavailable

router = APIRouter(tags=["conversations"])


def _require_admin(request: Request) -> None:
    expected = request.app.state.admin_token
    if not expected:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


@router.delete(
    "/api/conversations/{sender_id}", response_model=schemas.ConversationReset
)
def reset_conversation(sender_id: str, request: Request) -> schemas.ConversationReset:
    """Forget the open ticket of a sender so their next message opens a new one."""

    _require_admin(request)
    bridge: BridgeService = request.app.state.bridge
    try:
        removed = bridge.reset_conversation(sender_id)
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No open ticket for {sender_id}",
        )
    return schemas.ConversationReset(sender_id=sender_id, reset=True)
