"""
WhatsApp Session - Readiness and Send Coordination
===================================================

Owns one WhatsApp client and tracks whether it is ready to send.

The client reports lifecycle changes from its own thread. Each report is
turned into a signal (QRReceived, Ready, AuthFailure, Disconnected) and
applied on the event loop by handle_signal(), the only place besides
destroy() that changes session state.

USAGE:
    session = WhatsAppSession()
    await session.initialize()
    await session.wait_for_ready()
    await session.send_text_message(session.get_chat_id("+1 234 567 890"), "Hello!")
    await session.destroy()
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import Settings, get_settings, log_success
from .events import AuthFailure, Disconnected, QRReceived, Ready, SessionState, Signal
from .media import MessageMedia, SentMessage
from .messaging_provider import (
    EVENT_AUTH_FAILURE,
    EVENT_DISCONNECTED,
    EVENT_QR,
    EVENT_READY,
    MessagingClient,
)
from .qr_terminal import print_qr

logger = logging.getLogger(__name__)

CHAT_ID_SUFFIX = "@c.us"
_NON_DIGITS = re.compile(r"\D")


class SessionError(Exception):
    """Base exception for session errors."""
    pass


class ClientNotReadyError(SessionError):
    """Raised when a send is attempted before WhatsApp is ready."""

    def __init__(self, message: str = "Client is not ready. Wait for authentication."):
        super().__init__(message)


class ClientNotInitializedError(ClientNotReadyError):
    """Raised when the client is used before initialize()."""

    def __init__(self, message: str = "Client not initialized. Call initialize() first."):
        super().__init__(message)


class ReadyTimeoutError(SessionError, TimeoutError):
    """Raised when the client does not become ready in time."""
    pass


class SessionTerminatedError(SessionError):
    """Raised when the client kept disconnecting and the session gave up."""
    pass


def default_client_factory(settings: Settings) -> MessagingClient:
    from .whatsapp_client import WhatsAppWebClient
    return WhatsAppWebClient.from_settings(settings.whatsapp)


class WhatsAppSession:
    """
    Coordinates one WhatsApp client: lifecycle state, readiness waits and sends.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[Settings], MessagingClient]] = None,
    ):
        self._settings = settings or get_settings()
        self._client_factory = client_factory or default_client_factory
        self._client: Optional[MessagingClient] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.ready = False
        self.authenticated = False
        self.state = SessionState.UNINITIALIZED
        self.consecutive_disconnects = 0

    # ── Lifecycle ──────────────────────────────────────────────────

    async def initialize(self) -> MessagingClient:
        """
        Build the client, register lifecycle callbacks, then start it.
        Startup errors are logged and re-raised.
        """
        if self._client is not None:
            raise SessionError("Session already initialized. Call destroy() first.")

        logger.info("Initializing WhatsApp client...")
        self._loop = asyncio.get_running_loop()
        self.state = SessionState.INITIALIZING

        try:
            client = self._client_factory(self._settings)
            client.on(EVENT_QR, lambda payload: self._dispatch(QRReceived(payload)))
            client.on(EVENT_READY, lambda: self._dispatch(Ready()))
            client.on(EVENT_AUTH_FAILURE, lambda message="": self._dispatch(AuthFailure(message)))
            client.on(EVENT_DISCONNECTED, lambda reason="": self._dispatch(Disconnected(reason)))
            self._client = client

            await asyncio.to_thread(client.initialize)
        except Exception as e:
            logger.error(f"Failed to initialize WhatsApp client: {e}")
            self._client = None
            self.state = SessionState.UNINITIALIZED
            raise

        return client

    async def destroy(self) -> None:
        """Tear down the client. Does nothing when there is none."""
        client = self._client
        if client is None:
            return

        self._client = None
        try:
            await asyncio.to_thread(client.destroy)
        finally:
            self.ready = False
            self.authenticated = False
            self.consecutive_disconnects = 0
            self.state = SessionState.UNINITIALIZED
            logger.info("Client destroyed")

    @property
    def client(self) -> MessagingClient:
        if self._client is None:
            raise ClientNotInitializedError()
        return self._client

    def is_client_ready(self) -> bool:
        return self.ready and self._client is not None

    # ── Signals ────────────────────────────────────────────────────

    def _dispatch(self, signal: Signal) -> None:
        """Hand a signal from the client's thread over to the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self.handle_signal(signal)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self.handle_signal(signal)
        else:
            loop.call_soon_threadsafe(self.handle_signal, signal)

    def handle_signal(self, signal: Signal) -> None:
        """Apply one lifecycle signal to the session state."""
        if isinstance(signal, QRReceived):
            self.state = SessionState.AWAITING_QR
            logger.info("QR Code received! Scan with your phone:")
            print_qr(signal.payload)

        elif isinstance(signal, Ready):
            self.ready = True
            self.authenticated = True
            self.consecutive_disconnects = 0
            self.state = SessionState.READY
            log_success(logger, "WhatsApp client is ready!")

        elif isinstance(signal, AuthFailure):
            self.authenticated = False
            self.ready = False
            self.state = SessionState.AUTH_FAILED
            logger.error(f"Authentication failed: {signal.message}")
            logger.error("Please try scanning the QR code again.")

        elif isinstance(signal, Disconnected):
            self.ready = False
            self.consecutive_disconnects += 1
            limit = self._settings.whatsapp.max_consecutive_disconnects
            if self.consecutive_disconnects >= limit:
                self.state = SessionState.TERMINATED
                logger.error(
                    f"Client disconnected {self.consecutive_disconnects} times in a row "
                    f"({signal.reason}); giving up until restarted"
                )
            else:
                self.state = SessionState.DISCONNECTED
                logger.warning(f"Client disconnected: {signal.reason}")

        else:
            raise TypeError(f"Unknown signal: {signal!r}")

    # ── Readiness ──────────────────────────────────────────────────

    async def wait_for_ready(self, timeout_ms: Optional[int] = None) -> None:
        """
        Return once the client is ready. Re-checks every poll interval
        and raises ReadyTimeoutError after `timeout_ms` (default 60000).
        """
        if self.is_client_ready():
            return

        if timeout_ms is None:
            timeout_ms = self._settings.whatsapp.ready_timeout_ms
        interval = self._settings.whatsapp.ready_poll_interval
        deadline = time.monotonic() + timeout_ms / 1000

        while True:
            if self.state is SessionState.TERMINATED:
                raise SessionTerminatedError("Client disconnected repeatedly; session terminated")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadyTimeoutError("Client ready timeout")

            await asyncio.sleep(min(interval, remaining))
            if self.is_client_ready():
                return

    # ── Sending ────────────────────────────────────────────────────

    def _ready_client(self) -> MessagingClient:
        if self._client is None:
            raise ClientNotInitializedError()
        if not self.ready:
            raise ClientNotReadyError()
        return self._client

    async def _send(self, chat_id: str, content: Union[str, MessageMedia], what: str) -> SentMessage:
        client = self._ready_client()
        try:
            sent = await asyncio.to_thread(client.send_message, chat_id, content)
        except Exception as e:
            logger.error(f"Failed to send {what} to {chat_id}: {e}")
            raise
        log_success(logger, f"{what.capitalize()} sent to {chat_id}")
        return sent

    async def send_text_message(self, chat_id: str, message: str) -> SentMessage:
        """Send a text message. `chat_id` looks like "1234567890@c.us"."""
        return await self._send(chat_id, message, "message")

    async def send_media(
        self, chat_id: str, file_path: Union[str, Path], caption: str = ""
    ) -> SentMessage:
        """Send an image, video or document read from disk."""
        self._ready_client()
        try:
            media = await asyncio.to_thread(MessageMedia.from_file_path, file_path)
        except OSError as e:
            logger.error(f"Failed to send media to {chat_id}: {e}")
            raise
        if caption:
            media.caption = caption
        return await self._send(chat_id, media, "media")

    async def send_media_base64(
        self,
        chat_id: str,
        data: str,
        caption: str = "",
        mimetype: str = "image/jpeg",
        filename: Optional[str] = None,
    ) -> SentMessage:
        """Send media from base64 encoded bytes."""
        self._ready_client()
        media = MessageMedia(mimetype=mimetype, data=data, filename=filename)
        if caption:
            media.caption = caption
        return await self._send(chat_id, media, "media (base64)")

    @staticmethod
    def get_chat_id(phone_number: str) -> str:
        """Chat id for a phone number: its digits plus "@c.us"."""
        return f"{_NON_DIGITS.sub('', phone_number)}{CHAT_ID_SUFFIX}"
