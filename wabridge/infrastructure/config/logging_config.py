"""
Logging Setup - Console status lines
====================================

Adds a SUCCESS level between INFO and WARNING so completed sends and
lifecycle milestones stand out from plain progress messages.
"""

import logging

SUCCESS = 25
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

logging.addLevelName(SUCCESS, "SUCCESS")


def log_success(logger: logging.Logger, message: str, *args) -> None:
    """Log `message` at the SUCCESS level."""
    if logger.isEnabledFor(SUCCESS):
        logger.log(SUCCESS, message, *args)


def configure_logging(debug: bool = False) -> None:
    """Configure the root logger once for the whole process."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    # Selenium and urllib3 are chatty at DEBUG
    if debug:
        logging.getLogger("selenium").setLevel(logging.INFO)
        logging.getLogger("urllib3").setLevel(logging.INFO)
