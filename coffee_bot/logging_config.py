"""
Logging setup for Coffee Bot.

Call setup_logging() once at startup (main.py does it at import). Output goes
to stdout, where the hosting platform collects it.

- LOG_LEVEL picks the level of the ``coffee_bot`` loggers (default INFO).
  Names are case-insensitive; anything unrecognised means INFO.
- Below DEBUG the HTTP and Google client libraries are held at WARNING so a
  single order does not produce a page of transport chatter.
- The bot token is part of every Bot API URL. A filter on the root handlers
  masks it in every record, including urllib3's request lines at DEBUG.
"""
import logging
import os
import sys
from typing import Iterable, Optional

from .config import BOT_TOKEN

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Library loggers and the level they are held at outside DEBUG
QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "googleapiclient": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
}

MASK = "<token>"


def resolve_level(name: Optional[str]) -> int:
    """Map a level name to its number, falling back to INFO."""
    return LEVELS.get((name or "").strip().upper(), logging.INFO)


class RedactSecretsFilter(logging.Filter):
    """Replace each secret in a record's rendered message with a mask."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, MASK)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def install_redaction(secrets: Iterable[str], logger: Optional[logging.Logger] = None) -> RedactSecretsFilter:
    """Attach one RedactSecretsFilter to every handler of logger (root by default)."""
    logger = logger or logging.getLogger()
    redactor = RedactSecretsFilter(secrets)
    for handler in logger.handlers:
        for old in [f for f in handler.filters if isinstance(f, RedactSecretsFilter)]:
            handler.removeFilter(old)
        handler.addFilter(redactor)
    return redactor


def setup_logging(level: str = None, secrets: Optional[Iterable[str]] = None) -> int:
    """
    Configure logging for the bot.

    Args:
        level: Level name; LOG_LEVEL from the environment when omitted
        secrets: Strings masked in every record; the bot token when omitted

    Returns:
        The numeric level applied to the coffee_bot loggers
    """
    numeric_level = resolve_level(level if level is not None else os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
    )
    logging.getLogger("coffee_bot").setLevel(numeric_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logging.NOTSET if numeric_level == logging.DEBUG else quiet_level)

    install_redaction([BOT_TOKEN] if secrets is None else secrets)

    logging.getLogger(__name__).debug("Logging configured at %s", logging.getLevelName(numeric_level))
    return numeric_level
