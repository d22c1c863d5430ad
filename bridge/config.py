"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclasses.dataclass(frozen=True)
class BridgeSettings:
    """Settings for the WhatsApp transport, the Trello board and the state store."""

    whatsapp_access_token: str
    whatsapp_phone_number_id: str
    trello_api_key: str
    trello_api_token: str
    trello_board_id: str
    whatsapp_app_secret: str | None = None
    whatsapp_verify_token: str | None = None
    whatsapp_api_version: str = "v21.0"
    info_room: str | None = None
    trello_list_id: str | None = None
    trello_list_name: str = "New"
    trello_custom_field_id: str | None = None
    trello_custom_field_name: str = "WhatsApp"
    database_url: str = "sqlite:///data/bridge.db"
    tmp_dir: str = "./tmp"
    delete_attachments_after_forward: bool = False
    admin_token: str | None = None
    language: str = "en"
    channel: str = "whatsapp"


_REQUIRED = (
    "WHATSAPP_ACCESS_TOKEN",
    "WHATSAPP_PHONE_NUMBER_ID",
    "TRELLO_API_KEY",
    "TRELLO_API_TOKEN",
    "TRELLO_BOARD_ID",
)


@lru_cache(maxsize=1)
def get_settings() -> BridgeSettings:
    """Load settings from the environment, failing fast on missing credentials."""

    missing = [name for name in _REQUIRED if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"{', '.join(missing)} must be set.")
    return BridgeSettings(
        whatsapp_access_token=os.environ["WHATSAPP_ACCESS_TOKEN"],
        whatsapp_phone_number_id=os.environ["WHATSAPP_PHONE_NUMBER_ID"],
        trello_api_key=os.environ["TRELLO_API_KEY"],
        trello_api_token=os.environ["TRELLO_API_TOKEN"],
        trello_board_id=os.environ["TRELLO_BOARD_ID"],
        whatsapp_app_secret=os.getenv("WHATSAPP_APP_SECRET") or None,
        whatsapp_verify_token=os.getenv("WHATSAPP_VERIFY_TOKEN") or None,
        whatsapp_api_version=os.getenv("WHATSAPP_API_VERSION", "v21.0"),
        info_room=os.getenv("INFO_ROOM") or None,
        trello_list_id=os.getenv("TRELLO_LIST_ID") or None,
        trello_list_name=os.getenv("TRELLO_LIST_NAME", "New"),
        trello_custom_field_id=os.getenv("TRELLO_CUSTOM_FIELD_ID") or None,
        trello_custom_field_name=os.getenv("TRELLO_CUSTOM_FIELD_NAME", "WhatsApp"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/bridge.db"),
        tmp_dir=os.getenv("TMP_DIR", "./tmp"),
        delete_attachments_after_forward=_flag("DELETE_ATTACHMENTS_AFTER_FORWARD"),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        language=os.getenv("BRIDGE_LANGUAGE", "en").lower(),
        channel=os.getenv("BRIDGE_CHANNEL", "whatsapp").lower(),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
