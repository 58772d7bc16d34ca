import logging
from pathlib import Path

from wabridge.infrastructure.config import SUCCESS, Settings, configure_logging, log_success
from wabridge.infrastructure.config.settings import DEFAULT_BROWSER_ARGS


def test_defaults(monkeypatch):
    for name in ("PORT", "HOST", "DEBUG", "WHATSAPP_SESSION_DIR", "WHATSAPP_HEADLESS", "WHATSAPP_READY_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.server.port == 3000
    assert settings.server.host == "0.0.0.0"
    assert settings.debug is False
    assert settings.whatsapp.session_dir == Path(".session")
    assert settings.whatsapp.headless is True
    assert settings.whatsapp.ready_timeout_ms == 60000
    assert settings.whatsapp.ready_poll_interval == 1.0
    assert settings.whatsapp.startup_ready_timeout_ms == 120000
    assert settings.whatsapp.browser_args == DEFAULT_BROWSER_ARGS
    assert "--no-sandbox" in DEFAULT_BROWSER_ARGS


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("WHATSAPP_HEADLESS", "false")
    monkeypatch.setenv("WHATSAPP_SESSION_DIR", str(tmp_path))
    monkeypatch.setenv("WHATSAPP_READY_TIMEOUT_MS", "5000")

    settings = Settings()

    assert settings.server.port == 8080
    assert settings.debug is True
    assert settings.whatsapp.headless is False
    assert settings.whatsapp.session_dir == tmp_path
    assert settings.whatsapp.startup_ready_timeout_ms == 5000


def test_validate_flags_bad_port_and_missing_session(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "70000")
    monkeypatch.setenv("WHATSAPP_SESSION_DIR", str(tmp_path / "missing"))

    issues = Settings().validate()

    assert any("PORT" in issue for issue in issues)
    assert any("Session directory not found" in issue for issue in issues)


def test_success_level_sits_between_info_and_warning(caplog):
    assert logging.INFO < SUCCESS < logging.WARNING
    configure_logging(debug=False)

    logger = logging.getLogger("wabridge.test")
    with caplog.at_level(logging.INFO):
        log_success(logger, "Message sent to %s", "1@c.us")

    assert caplog.records[-1].levelname == "SUCCESS"
    assert caplog.records[-1].getMessage() == "Message sent to 1@c.us"
