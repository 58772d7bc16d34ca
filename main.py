"""
WhatsApp Webhook Bridge - Web Server Entry Point
================================================

Run this to start the webhook server:
    python main.py

Scan the QR code printed on the console on first run. Then:
    curl http://localhost:3000/health
    curl -X POST http://localhost:3000/webhook/send \\
         -H "Content-Type: application/json" \\
         -d '{"phoneNumber": "+1 234 567 890", "message": "Hello!"}'
"""

import logging

import uvicorn

from wabridge.infrastructure.config import configure_logging, get_settings
from wabridge.infrastructure.whatsapp import WhatsAppSession
from wabridge.web.app import create_app

logger = logging.getLogger(__name__)


def main():
    """Start the web server."""
    settings = get_settings()
    configure_logging(settings.debug)

    for issue in settings.validate():
        logger.warning(issue)

    print("\n" + "=" * 50)
    print("   WhatsApp Webhook Bridge")
    print("=" * 50)
    print(f"\n   Starting server at http://{settings.server.host}:{settings.server.port}")
    print("   Press Ctrl+C to stop\n")

    app = create_app(WhatsAppSession(settings), settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
