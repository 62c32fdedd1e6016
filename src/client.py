"""Telegram client factory for scrubscope.

We explicitly manage the client's lifecycle (connect/run_until_disconnected)
so it is obvious when the session is created and when it ends. The same user
session reads the online-list chat and delivers notifications.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

from core.errors import ConfigError


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    The session name defaults to "scrubscope" to create a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "scrubscope")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise ConfigError("Missing API_ID or API_HASH in environment")
    if not api_id.strip().isdigit():
        raise ConfigError("API_ID must be numeric")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(session_name, int(api_id), api_hash)
