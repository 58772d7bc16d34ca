"""
Messaging Provider - Contract for the External WhatsApp Client
===============================================================

The session layer talks to WhatsApp only through this interface.
The Selenium client implements it today; tests plug in a fake.

EVENTS:
    qr            (payload: str)       QR code shown, scan it to link
    ready         ()                   logged in, sends may be attempted
    auth_failure  (message: str)       linking/login rejected
    disconnected  (reason: str)        logged out or browser gone
    message       (msg: IncomingMessage)
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Union

from .media import MessageMedia, SentMessage

logger = logging.getLogger(__name__)

EVENT_QR = "qr"
EVENT_READY = "ready"
EVENT_AUTH_FAILURE = "auth_failure"
EVENT_DISCONNECTED = "disconnected"
EVENT_MESSAGE = "message"

EVENTS = (EVENT_QR, EVENT_READY, EVENT_AUTH_FAILURE, EVENT_DISCONNECTED, EVENT_MESSAGE)


class MessagingClient(ABC):
    """
    Abstract base class for WhatsApp messaging clients.

    Event registration is shared; implementations provide the
    connect, send and teardown steps.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {name: [] for name in EVENTS}
        self._listeners_lock = threading.Lock()

    def on(self, event: str, callback: Callable) -> None:
        """Register `callback` for `event`."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        with self._listeners_lock:
            self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        with self._listeners_lock:
            if callback in self._listeners.get(event, []):
                self._listeners[event].remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args) -> None:
        """Call every listener of `event` in registration order."""
        with self._listeners_lock:
            callbacks = list(self._listeners.get(event, []))
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.exception(f"Listener for '{event}' failed: {e}")

    @abstractmethod
    def initialize(self) -> None:
        """Start the client's connect sequence. Raises on startup failure."""
        ...

    @abstractmethod
    def send_message(self, chat_id: str, content: Union[str, MessageMedia]) -> SentMessage:
        """Send text or media to `chat_id`. Raises on failure."""
        ...

    @abstractmethod
    def destroy(self) -> None:
        """Tear down the client and release the browser."""
        ...
