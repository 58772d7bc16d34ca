from .events import AuthFailure, Disconnected, QRReceived, Ready, SessionState
from .media import IncomingMessage, MessageMedia, SentMessage
from .messaging_provider import MessagingClient
from .session import (
    ClientNotInitializedError,
    ClientNotReadyError,
    ReadyTimeoutError,
    SessionError,
    SessionTerminatedError,
    WhatsAppSession,
)

__all__ = [
    "AuthFailure",
    "Disconnected",
    "QRReceived",
    "Ready",
    "SessionState",
    "IncomingMessage",
    "MessageMedia",
    "SentMessage",
    "MessagingClient",
    "ClientNotInitializedError",
    "ClientNotReadyError",
    "ReadyTimeoutError",
    "SessionError",
    "SessionTerminatedError",
    "WhatsAppSession",
]
