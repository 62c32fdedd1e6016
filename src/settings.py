"""Static configuration for scrubscope.

All user-editable settings (feed, thresholds, digest, notifications) live in
a single JSON file for quick edits without touching Python. Secrets stay in
.env and are read by the app layer.
"""

import json
import os
import re
from datetime import timedelta

from core.config import BackoffConfig, DigestConfig, ScrubConfig
from core.errors import ConfigError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root; SCRUBSCOPE_CONFIG overrides it.
CONFIG_PATH = os.getenv("SCRUBSCOPE_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise ConfigError(f"Config file not found: {CONFIG_PATH} (copy config.example.json)")

    try:
        with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except ValueError as exc:
        raise ConfigError(f"Config file is not valid JSON: {CONFIG_PATH}: {exc}") from exc


def _number(section: dict, name: str, default, cast=int, minimum=None):
    raw = section.get(name, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a valid {cast.__name__}, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _ignore_patterns(raw):
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ConfigError("feed.ignore_patterns must be a list of regular expressions")
    for pattern in raw:
        try:
            re.compile(str(pattern))
        except re.error as exc:
            raise ConfigError(f"feed.ignore_patterns has an invalid regex {pattern!r}: {exc}") from None
    return [str(pattern) for pattern in raw]


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Scrub worker: threshold, steady-state throttle and per-call timeout.
_scrub = _CONFIG.get("scrub", {})
THRESHOLD = _number(_scrub, "threshold", 2500)
SCRUB_DELAY_MS = _number(_scrub, "delay_ms", 1200, minimum=0)
LOOKUP_TIMEOUT_SECONDS = _number(_scrub, "lookup_timeout_seconds", 8, cast=float, minimum=1)
# Set true to get a message per flagged handle in addition to the digest.
IMMEDIATE_FLAG_REPORTS = bool(_scrub.get("immediate_flag_reports", False))

# Cooldown applied when the lookup service rate limits us.
_backoff = _CONFIG.get("backoff", {})
BACKOFF_BASE_SECONDS = _number(_backoff, "base_seconds", 5, cast=float, minimum=0)
BACKOFF_MAX_SECONDS = _number(_backoff, "max_seconds", 900, cast=float, minimum=0)

# Digest cadence. The tick only checks due-ness, so it can be frequent.
_digest = _CONFIG.get("digest", {})
DIGEST_INTERVAL_HOURS = _number(_digest, "interval_hours", 24, minimum=1)
DIGEST_TICK_SECONDS = _number(_digest, "tick_seconds", 60, cast=float, minimum=1)
# Telegram caps messages at 4096 chars; leave room for the page header.
DIGEST_PAGE_CHARS = _number(_digest, "page_chars", 3500, minimum=100)

# Feed reader settings for the online-list chat.
_feed = _CONFIG.get("feed", {})
FEED_SOURCE = (_feed.get("source") or "").strip()
if not FEED_SOURCE:
    raise ConfigError("feed.source is required (e.g. '@onlinelist' or 'chat_id:-100123')")
POLL_SECONDS = _number(_feed, "poll_seconds", 60, minimum=10)
MESSAGES_PER_POLL = _number(_feed, "messages_per_poll", 1, minimum=1)
HANDLE_MIN_LENGTH = _number(_feed, "min_length", 2, minimum=1)
HANDLE_MAX_LENGTH = _number(_feed, "max_length", 20, minimum=1)
# None keeps the built-in header filters.
IGNORE_PATTERNS = _ignore_patterns(_feed.get("ignore_patterns"))
SOURCE_ALIASES = dict(_feed.get("aliases", {}))

# Notification method switches adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "saved_messages")
if NOTIFICATION_METHOD not in {"saved_messages", "bot"}:
    raise ConfigError("notification_method must be 'saved_messages' or 'bot'")
NOTIFICATION_TARGET = _notifications.get("target", "me")
# Bot chat id is only required when notification_method=bot.
BOT_CHAT_ID = _notifications.get("bot_chat_id")

# Chat commands (/xcheck, /trust, /untrust, /status).
_commands = _CONFIG.get("commands", {})
COMMANDS_ENABLED = bool(_commands.get("enabled", True))
COMMAND_CHATS = list(_commands.get("chats", ["me"]))

# Where to store the state document.
_state = _CONFIG.get("state", {})
STATE_PATH = _resolve_path(_state.get("path", "data/state.json"))
RESET_STATE_ON_START = bool(_state.get("reset_on_start", False))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def scrub_config() -> ScrubConfig:
    return ScrubConfig(
        threshold=THRESHOLD,
        delay_seconds=SCRUB_DELAY_MS / 1000,
        lookup_timeout_seconds=LOOKUP_TIMEOUT_SECONDS,
        immediate_flag_reports=IMMEDIATE_FLAG_REPORTS,
    )


def backoff_config() -> BackoffConfig:
    return BackoffConfig(base_seconds=BACKOFF_BASE_SECONDS, max_seconds=BACKOFF_MAX_SECONDS)


def digest_config() -> DigestConfig:
    return DigestConfig(
        interval=timedelta(hours=DIGEST_INTERVAL_HOURS),
        tick_seconds=DIGEST_TICK_SECONDS,
        page_chars=DIGEST_PAGE_CHARS,
    )
