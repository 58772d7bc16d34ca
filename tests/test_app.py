import asyncio
import base64
import re

import pytest
from fastapi.testclient import TestClient

from wabridge.infrastructure.whatsapp import MessageMedia
from wabridge.web.app import create_app, start_session


ISO_UTC = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
IMAGE_B64 = base64.b64encode(b"\xff\xd8\xff fake jpeg").decode()


@pytest.fixture
def http(session, settings):
    # No context manager: the lifespan (browser startup) does not run
    return TestClient(create_app(session, settings))


@pytest.fixture
def ready_http(ready_session, settings):
    return TestClient(create_app(ready_session, settings))


def test_health_reports_not_ready(http):
    response = http.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["whatsappReady"] is False
    assert ISO_UTC.match(body["timestamp"])


def test_health_reports_ready(ready_http):
    assert ready_http.get("/health").json()["whatsappReady"] is True


@pytest.mark.parametrize(
    "payload",
    [
        {"phoneNumber": "+1 234 567 890"},
        {"message": "Hello"},
        {"phoneNumber": "", "message": "Hello"},
        {},
    ],
)
def test_webhook_missing_fields_returns_400(ready_http, fake_client, payload):
    response = ready_http.post("/webhook/send", json=payload)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "phoneNumber and message are required"}
    assert fake_client.sent == []


@pytest.mark.parametrize(
    "request_kwargs",
    [
        {},
        {"content": "{not json", "headers": {"Content-Type": "application/json"}},
        {"json": {"phoneNumber": 1234567890, "message": "Hello"}},
        {"json": ["+1 234 567 890", "Hello"]},
    ],
    ids=["no-body", "malformed-json", "numeric-phone", "array-body"],
)
def test_webhook_unusable_body_returns_400(ready_http, fake_client, request_kwargs):
    response = ready_http.post("/webhook/send", **request_kwargs)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "phoneNumber and message are required"}
    assert fake_client.sent == []


def test_webhook_not_ready_returns_503(http, fake_client):
    response = http.post("/webhook/send", json={"phoneNumber": "123", "message": "Hello"})

    assert response.status_code == 503
    body = response.json()
    assert body["success"] is False
    assert body["ready"] is False
    assert "not ready" in body["error"]
    assert fake_client.sent == []


def test_webhook_sends_text(ready_http, fake_client):
    response = ready_http.post(
        "/webhook/send", json={"phoneNumber": "+1 (234) 567-890", "message": "Hello"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["chatId"] == "1234567890@c.us"
    assert body["messageId"].startswith("false_1234567890@c.us_")
    assert ISO_UTC.match(body["timestamp"])
    assert fake_client.sent == [("1234567890@c.us", "Hello")]


def test_webhook_with_image_uses_media_path(ready_http, fake_client):
    response = ready_http.post(
        "/webhook/send",
        json={"phoneNumber": "1234567890", "message": "Hello", "imageBase64": IMAGE_B64, "caption": "Our menu"},
    )

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"success", "messageId", "chatId", "timestamp"}
    assert body["chatId"] == "1234567890@c.us"

    chat_id, media = fake_client.sent[0]
    assert isinstance(media, MessageMedia)
    assert media.data == IMAGE_B64
    assert media.mimetype == "image/jpeg"
    assert media.caption == "Our menu"


def test_webhook_image_caption_falls_back_to_message(ready_http, fake_client):
    ready_http.post(
        "/webhook/send",
        json={"phoneNumber": "1234567890", "message": "Hello", "imageBase64": IMAGE_B64},
    )

    _, media = fake_client.sent[0]
    assert media.caption == "Hello"


def test_webhook_send_failure_returns_500(ready_http, fake_client):
    fake_client.send_error = RuntimeError("Media too large")

    response = ready_http.post("/webhook/send", json={"phoneNumber": "1", "message": "Hello"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Media too large"}


def test_start_session_swallows_startup_failure(session, settings, fake_client):
    fake_client.init_error = RuntimeError("chrome crashed")

    asyncio.run(start_session(session, settings))

    assert session.is_client_ready() is False


def test_start_session_survives_ready_timeout(session, settings, fake_client):
    asyncio.run(start_session(session, settings))

    assert fake_client.initialize_calls == 1
    assert session.is_client_ready() is False


def test_lifespan_starts_session_and_destroys_on_exit(session, settings, fake_client):
    fake_client.ready_on_init = True

    with TestClient(create_app(session, settings)) as client:
        assert client.get("/health").json()["whatsappReady"] is True

    assert fake_client.destroy_calls == 1
    assert session.is_client_ready() is False
