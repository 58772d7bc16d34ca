"""
Example: Receive and log incoming messages

Usage:
    python -m wabridge.examples.receive_messages [--auto-reply TEXT]

Listens until Ctrl+C. Unread chats are opened one at a time and each new
incoming message is printed once.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from wabridge.infrastructure.whatsapp import IncomingMessage, WhatsAppSession
from wabridge.infrastructure.whatsapp.messaging_provider import EVENT_MESSAGE

from ._runner import banner, run

logger = logging.getLogger(__name__)

RULE = "━" * 40


def format_message(msg: IncomingMessage) -> str:
    lines = [
        RULE,
        f"New message from: {msg.author or msg.chat_name or msg.chat_id}",
        f"   Number: {msg.chat_id.split('@')[0] or 'N/A'}",
        f"   Chat: {msg.chat_name or 'Individual'}",
        f"   Message: {msg.body or ''}",
        f"   Time: {msg.received_at:%Y-%m-%d %H:%M:%S}",
    ]
    if msg.has_media:
        lines.append("   Has media: Yes")
        lines.append(f"   Media type: {msg.media_type or 'unknown'}")
    lines.append(RULE)
    return "\n".join(lines)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Log incoming WhatsApp messages")
    parser.add_argument("--auto-reply", help="Reply with this text to messages containing 'hello'")
    args = parser.parse_args(argv)

    banner("Receive Messages")

    async def action(session: WhatsAppSession) -> None:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[IncomingMessage]" = asyncio.Queue()

        # Called on the client's monitor thread
        session.client.on(EVENT_MESSAGE, lambda msg: loop.call_soon_threadsafe(queue.put_nowait, msg))

        print("Client ready! Listening for messages...")
        print("Press Ctrl+C to stop\n")

        while True:
            msg = await queue.get()
            print(format_message(msg) + "\n")
            await maybe_reply(session, msg, args.auto_reply)

    return run(action)


async def maybe_reply(session: WhatsAppSession, msg: IncomingMessage, reply: Optional[str]) -> None:
    if not reply or not msg.chat_id or "hello" not in (msg.body or "").lower():
        return
    try:
        await session.send_text_message(msg.chat_id, reply)
        print("Auto-reply sent")
    except Exception as e:
        logger.error(f"Error handling message: {e}")


if __name__ == "__main__":
    sys.exit(main())
