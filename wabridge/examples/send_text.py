"""
Example: Send a text message

Usage:
    python -m wabridge.examples.send_text --phone "+1 234 567 890" --message "Hello!"

Scan the QR code printed on the console on first run.
"""

import argparse
import sys

from wabridge.infrastructure.whatsapp import WhatsAppSession

from ._runner import banner, run

DEFAULT_MESSAGE = "Hello from WhatsApp Web automation!"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a WhatsApp text message")
    parser.add_argument("--phone", required=True, help="Phone number with country code")
    parser.add_argument("--message", default=DEFAULT_MESSAGE, help="Text to send")
    args = parser.parse_args(argv)

    banner("Send Text Message")

    async def action(session: WhatsAppSession) -> None:
        chat_id = session.get_chat_id(args.phone)
        print(f"Sending message to: {chat_id}")
        result = await session.send_text_message(chat_id, args.message)
        print("Message sent successfully!")
        print(f"Message ID: {result.id}")

    return run(action)


if __name__ == "__main__":
    sys.exit(main())
