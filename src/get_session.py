"""Create the Telegram session used by the watcher.

Run ``python src/get_session.py`` once (``--phone`` for a login code instead
of a QR code). ``app.py`` calls ``authorize`` too, so a missing session is
also created on first ``scrubscope run``.
"""

import argparse
import asyncio
import logging
import os
from getpass import getpass

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors

from client import build_client

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 120


def _show_qr(url: str) -> None:
    code = qrcode.QRCode(border=1)
    code.add_data(url)
    code.make(fit=True)
    code.print_ascii(invert=True)
    print(f"Scan with Telegram > Settings > Devices (expires in {QR_TIMEOUT_SECONDS}s)")


async def _login_with_qr(client: TelegramClient) -> None:
    login = await client.qr_login()
    _show_qr(login.url)
    await login.wait(timeout=QR_TIMEOUT_SECONDS)


async def _login_with_code(client: TelegramClient) -> None:
    phone = os.getenv("TELEGRAM_PHONE") or input("Phone number: ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


async def authorize(client: TelegramClient, use_phone: bool = False) -> None:
    """Log the session in unless it already is."""

    if await client.is_user_authorized():
        return

    load_dotenv()
    use_phone = use_phone or os.getenv("TELEGRAM_LOGIN", "").strip().lower() == "phone"
    try:
        if use_phone:
            await _login_with_code(client)
        else:
            await _login_with_qr(client)
    except errors.SessionPasswordNeededError:
        password = os.getenv("TELEGRAM_PASSWORD") or getpass("Two-step verification password: ")
        await client.sign_in(password=password)


async def _main(use_phone: bool) -> None:
    client = build_client()
    await client.connect()
    try:
        await authorize(client, use_phone=use_phone)
        me = await client.get_me()
        LOGGER.info("Session ready for %s", me.username or me.first_name)
    finally:
        await client.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(prog="get_session", description="Log the scrubscope Telegram session in")
    parser.add_argument("--phone", action="store_true", help="Use a login code instead of a QR code")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main(args.phone))


if __name__ == "__main__":
    main()
