"""Shared plumbing for the example scripts."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from wabridge.infrastructure.config import configure_logging, get_settings
from wabridge.infrastructure.whatsapp import WhatsAppSession

logger = logging.getLogger(__name__)


def banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"   {title}")
    print("=" * 60 + "\n")


def require_file(path: str, kind: str) -> Path:
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"{kind} file not found: {file_path}")
    return file_path


async def _with_session(action: Callable[[WhatsAppSession], Awaitable[None]], keep_session: bool) -> None:
    session = WhatsAppSession(get_settings())
    try:
        logger.info("Initializing WhatsApp client...")
        await session.initialize()

        logger.info("Waiting for authentication...")
        await session.wait_for_ready()

        await action(session)
    finally:
        if not keep_session:
            await session.destroy()


def run(action: Callable[[WhatsAppSession], Awaitable[None]], keep_session: bool = False) -> int:
    """
    Initialize a session, wait for it, run `action`, tear down.
    Returns a process exit code.
    """
    settings = get_settings()
    configure_logging(settings.debug)
    try:
        asyncio.run(_with_session(action, keep_session))
    except KeyboardInterrupt:
        print("\nStopped.")
    except Exception as e:
        logger.error(f"Error: {e}")
        return 1
    return 0


def send_file(phone: str, path: str, caption: Optional[str], kind: str, size_warning_mb: Optional[int] = None) -> int:
    """Send one file from disk, used by the image and video examples."""
    try:
        file_path = require_file(path, kind)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    if size_warning_mb and file_path.stat().st_size > size_warning_mb * 1024 * 1024:
        logger.warning(f"{kind} is larger than {size_warning_mb}MB, WhatsApp may reject it")

    async def action(session: WhatsAppSession) -> None:
        chat_id = session.get_chat_id(phone)
        logger.info(f"Sending {kind.lower()} to: {chat_id}")
        logger.info(f"{kind} path: {file_path}")

        result = await session.send_media(chat_id, file_path, caption or "")
        print(f"{kind} sent successfully!")
        print(f"Message ID: {result.id}")

    return run(action)
