"""Interactive login that produces a reusable SESSION_STRING.

The scanner only ever connects with stored credentials; this is the one
place a human signs in.
"""

from __future__ import annotations

import asyncio
import logging
import os
from getpass import getpass
from typing import Awaitable, Callable, Dict, Tuple

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors
from telethon.sessions import StringSession

from client import APP_VERSION, DEVICE_MODEL

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 120
QR_REFRESHES = 3


def create_login_client() -> TelegramClient:
    """Client with an empty in-memory session; nothing touches the disk."""

    load_dotenv()
    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    return TelegramClient(
        StringSession(),
        int(api_id),
        api_hash,
        device_model=DEVICE_MODEL,
        app_version=APP_VERSION,
    )


def _show_qr(url: str) -> None:
    code = qrcode.QRCode(border=1)
    code.add_data(url)
    code.make(fit=True)
    code.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("Two-step verification password: ")


async def _sign_in_with_qr(client: TelegramClient) -> None:
    token = await client.qr_login()
    for attempt in range(QR_REFRESHES):
        _show_qr(token.url)
        print(f"Scan with Telegram > Settings > Devices (expires {token.expires:%H:%M:%S} UTC)")
        try:
            await token.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            LOGGER.info("QR token expired (%s/%s), issuing a new one", attempt + 1, QR_REFRESHES)
            await token.recreate()
    raise RuntimeError("QR login was not confirmed in time")


async def _sign_in_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Code from Telegram: ").strip())


LOGIN_METHODS: Dict[str, Tuple[str, Callable[[TelegramClient], Awaitable[None]]]] = {
    "qr": ("QR code", _sign_in_with_qr),
    "phone": ("Phone number and code", _sign_in_with_phone),
}


def _choose_method() -> str:
    preset = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if preset in LOGIN_METHODS:
        return preset

    keys = list(LOGIN_METHODS)
    print("")
    for index, key in enumerate(keys, start=1):
        print(f"[{index}] {LOGIN_METHODS[key][0]}")
    print("[0] Cancel")
    while True:
        choice = input("jobscope login > ").strip()
        if choice == "0":
            raise SystemExit(0)
        if choice.isdigit() and 1 <= int(choice) <= len(keys):
            return keys[int(choice) - 1]
        print(f"Choose a number between 0 and {len(keys)}.")


async def authorize(client: TelegramClient) -> None:
    if await client.is_user_authorized():
        return

    _, sign_in = LOGIN_METHODS[_choose_method()]
    try:
        await sign_in(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def login() -> str:
    """Sign in interactively and return the session string to store."""

    client = create_login_client()
    await client.connect()
    try:
        await authorize(client)
        me = await client.get_me()
        LOGGER.info("Logged in as %s", getattr(me, "username", None) or getattr(me, "id", "?"))
        return client.session.save()
    finally:
        await client.disconnect()
