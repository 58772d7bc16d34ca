import asyncio
import logging
from datetime import datetime

import pytest

from wabridge.examples import _runner, send_text
from wabridge.examples.receive_messages import format_message, maybe_reply
from wabridge.infrastructure.whatsapp import IncomingMessage, WhatsAppSession


@pytest.fixture
def runner_session(mocker, settings, fake_client):
    """Point the example runner at a session backed by the fake client."""
    fake_client.ready_on_init = True
    mocker.patch.object(_runner, "get_settings", return_value=settings)
    mocker.patch.object(_runner, "configure_logging")
    return mocker.patch.object(
        _runner,
        "WhatsAppSession",
        side_effect=lambda s: WhatsAppSession(s, client_factory=lambda _: fake_client),
    )


def make_message(**overrides):
    fields = dict(
        id="true_1234567890@c.us_3EB0AA",
        chat_id="1234567890@c.us",
        body="hello there",
        chat_name="Alice",
        received_at=datetime(2025, 1, 31, 12, 30, 5),
    )
    fields.update(overrides)
    return IncomingMessage(**fields)


def test_send_file_missing_path_never_builds_session(mocker, tmp_path, caplog):
    session_cls = mocker.patch.object(_runner, "WhatsAppSession")

    with caplog.at_level(logging.ERROR):
        code = _runner.send_file("+1 234", str(tmp_path / "nope.jpg"), None, "Image")

    assert code == 1
    session_cls.assert_not_called()
    assert "Image file not found" in caplog.text


def test_send_file_warns_when_over_size_limit(mocker, tmp_path, caplog):
    run = mocker.patch.object(_runner, "run", return_value=0)
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\0" * (2 * 1024 * 1024))

    with caplog.at_level(logging.WARNING):
        code = _runner.send_file("+1 234", str(video), None, "Video", size_warning_mb=1)

    assert code == 0
    run.assert_called_once()
    assert "Video is larger than 1MB, WhatsApp may reject it" in caplog.text


def test_send_file_under_size_limit_does_not_warn(mocker, tmp_path, caplog):
    mocker.patch.object(_runner, "run", return_value=0)
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\0" * 1024)

    with caplog.at_level(logging.WARNING):
        _runner.send_file("+1 234", str(video), None, "Video", size_warning_mb=1)

    assert "larger than" not in caplog.text


def test_send_file_sends_media_with_caption(runner_session, fake_client, tmp_path):
    image = tmp_path / "photo.png"
    image.write_bytes(b"\x89PNG fake")

    code = _runner.send_file("+1 234 567 890", str(image), "Look", "Image")

    assert code == 0
    chat_id, media = fake_client.sent[0]
    assert chat_id == "1234567890@c.us"
    assert media.filename == "photo.png"
    assert media.caption == "Look"
    assert fake_client.destroy_calls == 1


def test_send_text_main_sends_message(runner_session, fake_client):
    code = send_text.main(["--phone", "+1 234 567 890", "--message", "Hi"])

    assert code == 0
    assert fake_client.sent == [("1234567890@c.us", "Hi")]


def test_run_returns_1_when_startup_fails(runner_session, fake_client):
    fake_client.init_error = RuntimeError("chrome not reachable")

    async def action(session):
        raise AssertionError("action must not run")

    assert _runner.run(action) == 1


def test_format_message_without_media():
    text = format_message(make_message())

    assert "New message from: Alice" in text
    assert "   Number: 1234567890" in text
    assert "   Chat: Alice" in text
    assert "   Message: hello there" in text
    assert "   Time: 2025-01-31 12:30:05" in text
    assert "Has media" not in text
    assert "Media type" not in text


def test_format_message_with_media():
    text = format_message(make_message(body=None, has_media=True, media_type="image"))

    assert "   Message: \n" in text
    assert "   Has media: Yes" in text
    assert "   Media type: image" in text


def test_format_message_media_of_unknown_kind():
    text = format_message(make_message(has_media=True))

    assert "   Media type: unknown" in text


@pytest.mark.parametrize(
    "reply, body, sends",
    [
        ("Hi back", "Hello there", True),
        ("Hi back", "say HELLO", True),
        (None, "hello", False),
        ("", "hello", False),
        ("Hi back", "good morning", False),
        ("Hi back", None, False),
    ],
)
def test_maybe_reply_only_answers_hello(mocker, reply, body, sends):
    session = mocker.MagicMock()
    session.send_text_message = mocker.AsyncMock()

    asyncio.run(maybe_reply(session, make_message(body=body), reply))

    if sends:
        session.send_text_message.assert_awaited_once_with("1234567890@c.us", reply)
    else:
        session.send_text_message.assert_not_called()


def test_maybe_reply_logs_send_failure(mocker, caplog):
    session = mocker.MagicMock()
    session.send_text_message = mocker.AsyncMock(side_effect=RuntimeError("boom"))

    with caplog.at_level(logging.ERROR):
        asyncio.run(maybe_reply(session, make_message(), "Hi back"))

    assert "Error handling message: boom" in caplog.text
