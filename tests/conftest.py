import asyncio

import pytest

from wabridge.infrastructure.config import ServerSettings, Settings, WhatsAppSettings
from wabridge.infrastructure.whatsapp import MessageMedia, MessagingClient, Ready, SentMessage, WhatsAppSession
from wabridge.infrastructure.whatsapp.messaging_provider import EVENT_READY


class FakeClient(MessagingClient):
    """Stands in for the browser client and records every call."""

    def __init__(self):
        super().__init__()
        self.initialize_calls = 0
        self.destroy_calls = 0
        self.sent = []
        self.listeners_at_start = {}
        self.init_error = None
        self.send_error = None
        self.ready_on_init = False

    def initialize(self):
        self.initialize_calls += 1
        self.listeners_at_start = {name: len(callbacks) for name, callbacks in self._listeners.items()}
        if self.init_error:
            raise self.init_error
        if self.ready_on_init:
            self.emit(EVENT_READY)

    def send_message(self, chat_id, content):
        if self.send_error:
            raise self.send_error
        self.sent.append((chat_id, content))
        is_media = isinstance(content, MessageMedia)
        return SentMessage(
            id=f"false_{chat_id}_3EB0{len(self.sent):04d}",
            chat_id=chat_id,
            body=(content.caption or "") if is_media else content,
            has_media=is_media,
        )

    def destroy(self):
        self.destroy_calls += 1


@pytest.fixture
def settings(tmp_path):
    return Settings(
        whatsapp=WhatsAppSettings(
            session_dir=tmp_path / ".session",
            headless=True,
            ready_poll_interval=0.01,
            ready_timeout_ms=1000,
            startup_ready_timeout_ms=200,
            max_consecutive_disconnects=3,
        ),
        server=ServerSettings(host="127.0.0.1", port=3000),
        debug=False,
    )


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def session(settings, fake_client):
    return WhatsAppSession(settings, client_factory=lambda s: fake_client)


@pytest.fixture
def ready_session(session):
    """A session that is initialized and has seen the ready signal."""
    asyncio.run(session.initialize())
    session.handle_signal(Ready())
    return session
