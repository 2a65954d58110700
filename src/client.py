"""Telegram client factory for jobscope.

The session manager calls this factory on every reconnect, so each call
returns a fresh, unconnected client built from the stored credentials.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient
from telethon.sessions import StringSession

DEVICE_MODEL = "jobscope"
APP_VERSION = "1.0.0"


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    SESSION_STRING (from `jobscope login`) is preferred because it survives
    container rebuilds; otherwise SESSION_NAME selects a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_string = os.getenv("SESSION_STRING")
    session_name = os.getenv("SESSION_NAME", "jobscope")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram client")

    session = StringSession(session_string) if session_string else session_name
    return TelegramClient(
        session,
        int(api_id),
        api_hash,
        device_model=DEVICE_MODEL,
        app_version=APP_VERSION,
    )
