"""Application entry point for the scrubscope watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.json_state_store import JsonStateStore
from adapters.openxbl_resolver import OpenXblResolver
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_commands import CommandHandler, check_now
from adapters.telegram_feed import OnlineListPoller, build_extraction_rules
from adapters.telegram_notifier import TelegramChatNotifier
from client import build_client
from core.errors import ConfigError, StateLockedError
from core.models import PipelineState
from core.pipeline import ScrubPipeline
from core.state import StateKeeper
from core.trust import TrustGate
from get_session import authorize

NAME = "SCRUBSCOPE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/scrubscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # httpx logs every request URL at INFO; keep it quiet unless debugging.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def _require_env(name: str) -> str:
    load_dotenv()
    value = (os.getenv(name) or "").strip()
    if not value:
        raise ConfigError(f"Missing {name} env var.")
    return value


def _build_resolver() -> OpenXblResolver:
    return OpenXblResolver(
        api_key=_require_env("XBL_API_KEY"),
        timeout=settings.LOOKUP_TIMEOUT_SECONDS,
    )


def _build_notifier(client):
    # Select the notification adapter based on configuration to keep the core
    # pipeline independent from delivery details.
    if settings.NOTIFICATION_METHOD == "bot":
        bot_token = _require_env("BOT_API")
        if not settings.BOT_CHAT_ID:
            raise ConfigError("notifications.bot_chat_id is required for bot notifications")
        return TelegramBotNotifier(
            bot_token=bot_token,
            chat_id=str(settings.BOT_CHAT_ID),
            source_aliases=settings.SOURCE_ALIASES,
        )
    return TelegramChatNotifier(client, settings.SOURCE_ALIASES, target=settings.NOTIFICATION_TARGET)


def _lock_path() -> str:
    return f"{settings.STATE_PATH}.lock"


def _watcher_pid() -> Optional[int]:
    """Return the pid of a live watcher holding the state lock, if any."""

    try:
        with open(_lock_path(), "r", encoding="utf-8") as handle:
            pid = int(handle.read().strip())
    except (OSError, ValueError):
        return None
    if pid <= 0:
        return None
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return None
    except PermissionError:
        return pid
    return pid


def _acquire_lock() -> None:
    pid = _watcher_pid()
    if pid is not None and pid != os.getpid():
        raise StateLockedError(f"Another watcher (pid {pid}) is already using {settings.STATE_PATH}.")
    directory = os.path.dirname(_lock_path())
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(_lock_path(), "w", encoding="utf-8") as handle:
        handle.write(str(os.getpid()))


def _release_lock() -> None:
    try:
        os.remove(_lock_path())
    except FileNotFoundError:
        pass


def _require_watcher_stopped() -> None:
    # The running watcher would overwrite offline edits on its next save.
    pid = _watcher_pid()
    if pid is not None:
        raise StateLockedError(
            f"scrubscope run is active (pid {pid}). Stop it first, or use the chat commands instead."
        )


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting scrubscope")
    logger.info(
        "threshold=%s digest_interval_hours=%s delay_ms=%s poll_seconds=%s state=%s",
        settings.THRESHOLD,
        settings.DIGEST_INTERVAL_HOURS,
        settings.SCRUB_DELAY_MS,
        settings.POLL_SECONDS,
        settings.STATE_PATH,
    )

    resolver = _build_resolver()
    client = build_client()
    client.loop.run_until_complete(client.connect())
    client.loop.run_until_complete(authorize(client))
    notifier = _build_notifier(client)
    logger.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    _acquire_lock()
    store = JsonStateStore(settings.STATE_PATH)
    pipeline = ScrubPipeline(
        store=store,
        resolver=resolver,
        notifier=notifier,
        scrub_config=settings.scrub_config(),
        backoff_config=settings.backoff_config(),
        digest_config=settings.digest_config(),
    )
    if settings.RESET_STATE_ON_START:
        logger.warning("state.reset_on_start=true -> clearing %s", settings.STATE_PATH)
        pipeline.reset()

    poller = OnlineListPoller(
        client,
        settings.FEED_SOURCE,
        offer=pipeline.offer,
        rules=build_extraction_rules(
            settings.HANDLE_MIN_LENGTH,
            settings.HANDLE_MAX_LENGTH,
            settings.IGNORE_PATTERNS,
        ),
        messages_per_poll=settings.MESSAGES_PER_POLL,
        poll_seconds=settings.POLL_SECONDS,
    )

    if settings.COMMANDS_ENABLED:
        commands = CommandHandler(pipeline, resolver)

        @client.on(events.NewMessage(chats=settings.COMMAND_CHATS, pattern=r"^/"))
        async def handler(event) -> None:
            try:
                reply = await commands.handle(event.raw_text)
                if reply:
                    await event.reply(reply, parse_mode="md")
            except Exception:
                logger.exception("Error while handling command")

    # Poll, the digest ticker and the worker all share the client's loop.
    background = [
        client.loop.create_task(poller.run_forever()),
        client.loop.create_task(pipeline.digest.run_forever()),
    ]

    logger.info("Client connected. Watching %s ...", settings.FEED_SOURCE)
    try:
        client.run_until_disconnected()
    finally:
        for task in background:
            task.cancel()
        client.loop.run_until_complete(resolver.aclose())
        if isinstance(notifier, TelegramBotNotifier):
            client.loop.run_until_complete(notifier.aclose())
        _release_lock()


def _check(handle: str) -> None:
    _configure_logging()

    async def _run_check() -> str:
        resolver = _build_resolver()
        try:
            return await check_now(resolver, handle, settings.THRESHOLD, mode="text")
        finally:
            await resolver.aclose()

    print(asyncio.run(_run_check()))


def _trust(handle: str, untrust: bool = False) -> None:
    _configure_logging()
    _require_watcher_stopped()
    keeper = StateKeeper(JsonStateStore(settings.STATE_PATH))
    gate = TrustGate(keeper)
    if untrust:
        display = gate.untrust(handle)
        print(f"Untrusted {display}." if display else f"{handle} was not trusted.")
        return
    print(f"Trusted {gate.trust(handle)}. Existing flags removed.")


def _status() -> None:
    state = JsonStateStore(settings.STATE_PATH).load()
    last = state.last_digest_at.isoformat() if state.last_digest_at else "never"
    print(f"State file: {settings.STATE_PATH}")
    print(f"Checked: {len(state.checked)}")
    print(f"Pending: {len(state.pending)}")
    print(f"All-time flagged: {len(state.all_time)}")
    print(f"Trusted: {len(state.trusted)}")
    print(f"Last digest: {last}")


def _reset() -> None:
    _configure_logging()
    _require_watcher_stopped()
    JsonStateStore(settings.STATE_PATH).save(PipelineState())
    print(f"Cleared {settings.STATE_PATH}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="scrubscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    check_parser = subparsers.add_parser("check", help="Look up one handle now")
    check_parser.add_argument("handle")
    trust_parser = subparsers.add_parser("trust", help="Add a handle to the allow-list")
    trust_parser.add_argument("handle")
    untrust_parser = subparsers.add_parser("untrust", help="Remove a handle from the allow-list")
    untrust_parser.add_argument("handle")
    subparsers.add_parser("status", help="Show state counters")
    subparsers.add_parser("reset", help="Clear all state (checked, pending, flagged, trusted)")

    args = parser.parse_args(argv)
    try:
        if args.command == "check":
            _check(args.handle)
        elif args.command in {"trust", "untrust"}:
            _trust(args.handle, untrust=args.command == "untrust")
        elif args.command == "status":
            _status()
        elif args.command == "reset":
            _reset()
        else:
            _run()
    except ConfigError as exc:
        parser.exit(1, f"Configuration error: {exc}\n")
    except StateLockedError as exc:
        parser.exit(1, f"{exc}\n")


if __name__ == "__main__":
    main()
