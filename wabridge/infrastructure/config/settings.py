"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclass for safety and clarity
- Single source of truth for all configurable values
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

# Load .env file if present (development convenience)
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# Chrome flags used for every WhatsApp Web browser launch
DEFAULT_BROWSER_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
)


@dataclass(frozen=True)
class WhatsAppSettings:
    """WhatsApp Web browser and session settings."""

    # Persistent Chrome profile; WhatsApp Web keeps its login here
    session_dir: Path = field(
        default_factory=lambda: Path(os.getenv("WHATSAPP_SESSION_DIR", ".session"))
    )
    headless: bool = field(default_factory=lambda: _env_bool("WHATSAPP_HEADLESS", True))
    browser_args: Tuple[str, ...] = DEFAULT_BROWSER_ARGS

    # Readiness polling (seconds) and default wait (milliseconds)
    ready_poll_interval: float = 1.0
    ready_timeout_ms: int = 60000

    # Wait used by the HTTP server at startup
    startup_ready_timeout_ms: int = field(
        default_factory=lambda: _env_int("WHATSAPP_READY_TIMEOUT_MS", 120000)
    )

    # Disconnects in a row (without a ready in between) before giving up
    max_consecutive_disconnects: int = 3

    # How often the browser monitor inspects the page (seconds)
    monitor_interval: float = 2.0

    # SAFETY: Human-like delay ranges while typing (seconds)
    min_typing_delay: float = 0.1
    max_typing_delay: float = 0.3


@dataclass(frozen=True)
class ServerSettings:
    """HTTP webhook server settings."""

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 3000))


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from wabridge.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.server.port)
    """

    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    server: ServerSettings = field(default_factory=ServerSettings)

    # Verbose logging
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", False))

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not 0 < self.server.port < 65536:
            issues.append(f"ERROR: PORT must be between 1 and 65535, got {self.server.port}.")

        if not self.whatsapp.session_dir.exists():
            issues.append(
                f"WARNING: Session directory not found: {self.whatsapp.session_dir}. "
                "A QR code scan will be required."
            )

        if not self.whatsapp.headless and not os.getenv("DISPLAY") and os.name != "nt":
            issues.append(
                "WARNING: WHATSAPP_HEADLESS is false but no DISPLAY is set. "
                "Chrome may fail to start."
            )

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
