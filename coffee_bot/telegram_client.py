"""
Telegram Bot API client with time-bounded calls.

Sends real requests when BOT_TOKEN is configured, falls back to logging in
mock mode so the webhook can be exercised locally without a bot.

Environment variables:
- BOT_TOKEN: Telegram bot token
- ADMIN_CHAT_ID: Optional operator chat for error notifications
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import ADMIN_CHAT_ID, BOT_TOKEN, TELEGRAM_API_BASE, TELEGRAM_TIMEOUT_SECONDS
from .schemas.telegram import InlineKeyboardMarkup

logger = logging.getLogger(__name__)


class TelegramError(RuntimeError):
    """Raised when a Bot API call fails, times out or returns ok=false."""


class TelegramClient:
    def __init__(
        self,
        token: str = None,
        admin_chat_id: str = None,
        timeout: float = TELEGRAM_TIMEOUT_SECONDS,
        api_base: str = TELEGRAM_API_BASE,
    ):
        self.token = BOT_TOKEN if token is None else token
        self.admin_chat_id = ADMIN_CHAT_ID if admin_chat_id is None else admin_chat_id
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.token)

    def _redact(self, text: str) -> str:
        return text.replace(self.token, "<token>") if self.token else text

    def call(self, method: str, payload: Dict[str, Any], timeout: float = None) -> Any:
        """
        POST a Bot API method and return its ``result``.

        Raises:
            TelegramError: on transport errors, timeouts, non-JSON replies,
                HTTP errors or an ``ok: false`` envelope.
        """
        body = {k: v for k, v in payload.items() if v is not None}

        if not self.is_configured():
            logger.info("MOCK Telegram %s: %s", method, body)
            return {}

        url = f"{self.api_base}/bot{self.token}/{method}"
        try:
            res = requests.post(url, json=body, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            # requests puts the URL, and with it the token, into its messages
            raise TelegramError(f"Telegram {method} failed: {self._redact(str(e))}") from e

        try:
            data = res.json()
        except ValueError as e:
            raise TelegramError(
                f"Telegram {method} failed: non-JSON response ({res.status_code} {res.reason})"
            ) from e

        if not res.ok or not data.get("ok"):
            desc = f" - {data['description']}" if data.get("description") else ""
            raise TelegramError(f"Telegram {method} failed: {res.status_code} {res.reason}{desc}")

        return data.get("result")

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
        parse_mode: str = "HTML",
        disable_notification: bool = True,
    ) -> Any:
        return self.call("sendMessage", {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "reply_markup": reply_markup.to_payload() if reply_markup else None,
            "disable_notification": disable_notification,
        })

    def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
        parse_mode: str = "HTML",
    ) -> Any:
        """Edit the card text; Telegram drops the keyboard unless reply_markup is given."""
        return self.call("editMessageText", {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": parse_mode,
            "reply_markup": reply_markup.to_payload() if reply_markup else None,
        })

    def answer_callback_query(
        self,
        callback_query_id: str,
        text: str = "",
        show_alert: bool = False,
        cache_time: int = 0,
    ) -> Any:
        """Acknowledge a button press. Empty text acknowledges silently."""
        return self.call("answerCallbackQuery", {
            "callback_query_id": callback_query_id,
            "text": text,
            "show_alert": show_alert,
            "cache_time": cache_time,
        })

    def notify_admin(self, text: str) -> None:
        """Best-effort message to the operator chat. Never raises."""
        if not self.admin_chat_id:
            return
        try:
            self.send_message(int(self.admin_chat_id), text)
        except (TelegramError, ValueError) as e:
            logger.warning("Admin notification failed: %s", e)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def set_my_commands(
        self,
        commands: List[Dict[str, str]],
        scope: Optional[Dict[str, Any]] = None,
        language_code: Optional[str] = None,
    ) -> Any:
        return self.call("setMyCommands", {
            "commands": commands,
            "scope": scope,
            "language_code": language_code,
        })

    def delete_my_commands(
        self,
        scope: Optional[Dict[str, Any]] = None,
        language_code: Optional[str] = None,
    ) -> Any:
        return self.call("deleteMyCommands", {"scope": scope, "language_code": language_code})
