"""
FastAPI Web Application - WhatsApp Webhook Bridge
==================================================

HTTP surface for automation tools (n8n and similar):

    GET  /health          readiness report
    POST /webhook/send    {phoneNumber, message, imageBase64?, caption?}
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wabridge.infrastructure.config import Settings, get_settings, log_success
from wabridge.infrastructure.whatsapp import WhatsAppSession

logger = logging.getLogger(__name__)

MISSING_FIELDS_ERROR = "phoneNumber and message are required"


class SendRequest(BaseModel):
    """Webhook body. Fields are optional here so missing ones get our 400."""

    phoneNumber: Optional[str] = None
    message: Optional[str] = None
    imageBase64: Optional[str] = None
    caption: Optional[str] = None


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2025-01-31T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def start_session(session: WhatsAppSession, settings: Settings) -> None:
    """
    Initialize WhatsApp and wait for authentication. Failures are logged,
    not raised, so the server still comes up and /health can report them.
    """
    try:
        logger.info("Starting WhatsApp client...")
        await session.initialize()

        logger.info("Waiting for WhatsApp authentication...")
        await session.wait_for_ready(settings.whatsapp.startup_ready_timeout_ms)
        log_success(logger, "WhatsApp client ready, webhook accepting messages")
    except Exception as e:
        logger.error(f"Failed to start WhatsApp client: {e}")
        logger.warning(f"Server started but WhatsApp client not ready on port {settings.server.port}")
        logger.info("Please check logs for QR code to authenticate")


def create_app(session: WhatsAppSession, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await start_session(session, settings)
        logger.info(f"Health: http://localhost:{settings.server.port}/health")
        logger.info(f"Webhook: http://localhost:{settings.server.port}/webhook/send")
        yield
        logger.info("Shutting down gracefully...")
        await session.destroy()

    app = FastAPI(
        title="WhatsApp Webhook Bridge",
        description="Send WhatsApp messages through WhatsApp Web",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.session = session

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # Unreadable or mistyped webhook bodies get the same 400 as missing fields
        if request.url.path == "/webhook/send":
            logger.warning(f"Rejected webhook body: {exc.errors()}")
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": MISSING_FIELDS_ERROR},
            )
        return await request_validation_exception_handler(request, exc)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "whatsappReady": session.is_client_ready(),
            "timestamp": utc_timestamp(),
        }

    @app.post("/webhook/send")
    async def webhook_send(body: Optional[SendRequest] = None):
        if body is None or not body.phoneNumber or not body.message:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": MISSING_FIELDS_ERROR},
            )

        if not session.is_client_ready():
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "error": "WhatsApp client is not ready. Please wait for authentication.",
                    "ready": False,
                },
            )

        chat_id = session.get_chat_id(body.phoneNumber)

        try:
            if body.imageBase64:
                result = await session.send_media_base64(
                    chat_id, body.imageBase64, body.caption or body.message
                )
            else:
                result = await session.send_text_message(chat_id, body.message)
        except Exception as e:
            logger.exception(f"Error sending message: {e}")
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

        log_success(logger, f"Message sent to {body.phoneNumber}")
        return {
            "success": True,
            "messageId": result.id,
            "chatId": chat_id,
            "timestamp": utc_timestamp(),
        }

    return app
