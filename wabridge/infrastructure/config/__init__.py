from .settings import Settings, WhatsAppSettings, ServerSettings, get_settings
from .logging_config import SUCCESS, configure_logging, log_success

__all__ = [
    "Settings",
    "WhatsAppSettings",
    "ServerSettings",
    "get_settings",
    "SUCCESS",
    "configure_logging",
    "log_success",
]
