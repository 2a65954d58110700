"""Application entry point for the jobscope worker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from typing import Iterable, List, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.json_catalog import JsonCatalog
from adapters.notification_formatting import build_renderer
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_sender import BotApiSender
from adapters.telegram_session import TelegramSessionManager
from adapters.telegram_source import TelethonSource
from client import build_client
from core.cycle import PipelineCycle
from core.dedup import DedupLedger
from core.dispatcher import NotificationDispatcher
from core.scanner import ChannelScanner
from scheduler import build_scheduler

LOGGER = logging.getLogger(__name__)

NAME = "JOBSCOPE"
FONT = "tarty-1"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
# The bot token ends up in request URLs, so these are masked even when the
# config lists nothing.
ALWAYS_REDACTED = ("BOT_API", "API_HASH", "SESSION_STRING")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Replaces known secret values with ``***`` in formatted records."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        # Longest first so a secret containing another is masked whole.
        ordered = sorted({s for s in secrets if s}, key=len, reverse=True)
        self._pattern = re.compile("|".join(map(re.escape, ordered))) if ordered else None

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if self._pattern is None:
            return message
        return self._pattern.sub("***", message)


def _secret_values(redact_cfg: dict) -> List[str]:
    if not redact_cfg.get("enabled", True):
        return []
    names = set(redact_cfg.get("patterns", [])) | set(ALWAYS_REDACTED)
    return [os.environ[name] for name in names if os.getenv(name)]


def _rotating_file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/jobscope.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)

    handlers: List[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_rotating_file_handler(file_cfg))
    if not handlers:
        return

    formatter = _RedactingFormatter(_secret_values(config.get("redact", {})))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO about reconnects we already log ourselves.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


class _Worker:
    """Explicitly wired services for one process."""

    def __init__(self) -> None:
        load_dotenv()
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required to deliver notifications")

        self.storage = _open_storage()
        self.session = TelegramSessionManager(build_client, settings.SESSION)
        self.ledger = DedupLedger(self.storage, settings.DEDUP)
        catalog = JsonCatalog(settings.CHANNELS, settings.RECIPIENTS, self.storage)
        scanner = ChannelScanner(TelethonSource(self.session), settings.SCAN)
        dispatcher = NotificationDispatcher(
            BotApiSender(bot_token),
            build_renderer(settings.DELIVERY),
            settings.DELIVERY,
        )
        self.cycle = PipelineCycle(
            session=self.session,
            catalog=catalog,
            scanner=scanner,
            ledger=self.ledger,
            dispatcher=dispatcher,
            scan_config=settings.SCAN,
        )


async def _serve() -> None:
    worker = _Worker()
    worker.ledger.sweep()

    scheduler = build_scheduler(worker.cycle, worker.ledger, settings.SCHEDULER)
    scheduler.start()
    LOGGER.info("Worker started, waiting for scheduled cycles")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await worker.session.close()
        LOGGER.info("Worker stopped")


async def _once() -> None:
    worker = _Worker()
    try:
        report = await worker.cycle.run()
    finally:
        await worker.session.close()
    for key, value in asdict(report).items():
        print(f"{key}: {value}")


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting jobscope")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")


def _sweep() -> None:
    _configure_logging()
    ledger = DedupLedger(_open_storage(), settings.DEDUP)
    print(f"Removed {ledger.sweep()} dedup entries")


def _login() -> None:
    _print_banner()
    from get_session import login

    session_string = asyncio.run(login())
    print("")
    print("Store this value as SESSION_STRING in your .env:")
    print(session_string)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="jobscope", description="Telegram job-posting watcher")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("run", help="Start the scheduled worker (default)")
    commands.add_parser("once", help="Run a single scan-and-notify cycle")
    commands.add_parser("sweep", help="Purge expired dedup entries")
    commands.add_parser("login", help="Sign in and print a SESSION_STRING")

    command = parser.parse_args(argv).command
    if command == "once":
        _configure_logging()
        asyncio.run(_once())
    elif command == "sweep":
        _sweep()
    elif command == "login":
        _login()
    else:
        _run()


if __name__ == "__main__":
    main()
