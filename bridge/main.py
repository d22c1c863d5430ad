"""FastAPI application wiring for the WhatsApp ticket bridge.

The service receives WhatsApp webhook events and hands every message to the
:class:`~bridge.conversations.service.BridgeService`, which creates Trello
cards for new conversations and comments for follow-ups.

Run it with ``uvicorn bridge.main:create_app --factory`` or through the
``whatsapp-ticket-bridge`` console script.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .channels import ChatTransport, get_transport
from .config import BridgeSettings, get_settings
from .conversations.messages import messages_for
from .conversations.service import BridgeService
from .conversations.state import SqlConversationStateStore
from .models.session import create_schema, get_engine, get_sessionmaker
from .routers import conversations, webhooks
from .tickets.trello import TrelloTicketClient

logger = logging.getLogger(__name__)


def build_bridge(settings: BridgeSettings) -> tuple[BridgeService, ChatTransport]:
    """Create the transport, ticket client and state store described by ``settings``."""

    transport = get_transport(settings.channel).from_settings(settings)
    tickets = TrelloTicketClient(
        api_key=settings.trello_api_key,
        api_token=settings.trello_api_token,
        board_id=settings.trello_board_id,
        custom_field_id=settings.trello_custom_field_id,
        custom_field_name=settings.trello_custom_field_name,
    )
    list_id = settings.trello_list_id or tickets.resolve_list_id(settings.trello_list_name)

    engine = get_engine(settings.database_url)
    create_schema(engine)
    store = SqlConversationStateStore(get_sessionmaker(engine))

    bridge = BridgeService(
        transport,
        tickets,
        store,
        board_id=settings.trello_board_id,
        list_id=list_id,
        operator_chat=settings.info_room,
        messages=messages_for(settings.language),
        tmp_dir=settings.tmp_dir,
        delete_attachments=settings.delete_attachments_after_forward,
    )
    return bridge, transport


def create_app(
    bridge: BridgeService | None = None,
    transport: ChatTransport | None = None,
    *,
    verify_token: str | None = None,
    admin_token: str | None = None,
) -> FastAPI:
    """Build the FastAPI app; without arguments everything comes from the environment."""

    load_dotenv()
    app = FastAPI(title="WhatsApp ticket bridge", version=__version__)
    init_logging(app)

    if bridge is None or transport is None:
        settings = get_settings()
        bridge, transport = build_bridge(settings)
        verify_token = verify_token or settings.whatsapp_verify_token
        admin_token = admin_token or settings.admin_token
        bridge.log_joined_channels()

    app.state.bridge = bridge
    app.state.transport = transport
    app.state.verify_token = verify_token
    app.state.admin_token = admin_token

    @app.get("/api/health")
    async def health():
        """Liveness/readiness probe with a minimal JSON body."""
        return {"status": "ok"}

    @app.get("/api/version")
    async def version():
        return {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }

    app.include_router(webhooks.router)
    app.include_router(conversations.router)
    logger.info("Bridge %s ready", __version__)
    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    uvicorn.run(
        "bridge.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
