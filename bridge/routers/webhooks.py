"""Webhook routes receiving WhatsApp events."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from ..channels.base import ChatTransport
from ..conversations import schemas
from ..conversations.service import BridgeService

router = APIRouter(tags=["webhooks"])

logger = logging.getLogger(__name__)


def _transport(request: Request) -> ChatTransport:
    return request.app.state.transport


def _bridge(request: Request) -> BridgeService:
    return request.app.state.bridge


@router.get("/api/webhooks/whatsapp", response_class=PlainTextResponse)
async def verify_webhook(request: Request) -> str:
    """Answer the subscription handshake Meta performs when registering the hook."""

    params = request.query_params
    expected = request.app.state.verify_token
    if (
        expected
        and params.get("hub.mode") == "subscribe"
        and params.get("hub.verify_token") == expected
    ):
        return params.get("hub.challenge", "")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post(
    "/api/webhooks/whatsapp",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=schemas.WebhookAccepted,
)
async def ingest_webhook(
    request: Request, background_tasks: BackgroundTasks
) -> schemas.WebhookAccepted:
    """Queue every message contained in the event for the bridge."""

    body_bytes = await request.body()
    transport = _transport(request)
    if not transport.verify_signature(body_bytes, request.headers):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )
    try:
        payload = json.loads(body_bytes.decode("utf-8")) if body_bytes else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid JSON payload: {exc}"
        ) from exc

    bridge = _bridge(request)
    messages = list(transport.parse_incoming(payload))
    for message in messages:
        background_tasks.add_task(bridge.handle_message, message)
    if messages:
        logger.debug("Queued %d message(s) from webhook", len(messages))
    return schemas.WebhookAccepted(accepted=len(messages))
