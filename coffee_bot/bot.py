"""
Bot service: deduplicates Telegram updates and routes them.

Routing:
    update ─> Deduplicator ─┬─> message  ─> /start /menu /list /undo /help
                            │               └─> OrderFlow.handle_quantity_message
                            └─> callback ─> OrderFlow.handle_callback

Messages that are neither commands nor quantity replies are ignored.
"""

import html
import logging
from typing import Optional

from .idempotency import Deduplicator
from .ledger import LedgerError, OrderLedger
from .menu import MENU_PROMPT, Catalog
from .order_flow import OrderFlow
from .schemas.orders import UndoStatus
from .schemas.telegram import Message, Update
from .telegram_client import TelegramClient, TelegramError

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "/menu - pick a drink\n"
    "/list - drinks and prices\n"
    "/undo - remove your last order"
)

UNDO_NOTHING_TEXT = "No recent order to undo."
UNDO_FAILED_TEXT = "⚠ couldn't undo, try again"
UNDO_STALE_TEXT = (
    "Your last order moved in the sheet and was not removed; please ask staff to fix it."
)


def parse_command(text: Optional[str]) -> Optional[str]:
    """'/menu@CoffeeBot extra' -> 'menu'; None for non-commands."""
    s = (text or "").strip()
    if not s.startswith("/"):
        return None
    word = s.split()[0][1:]
    return word.split("@", 1)[0].lower() or None


class BotService:
    def __init__(
        self,
        flow: OrderFlow,
        ledger: OrderLedger,
        telegram: TelegramClient,
        catalog: Catalog,
        dedup: Deduplicator,
    ):
        self.flow = flow
        self.ledger = ledger
        self.telegram = telegram
        self.catalog = catalog
        self.dedup = dedup

    def _send(self, chat_id: int, text: str, keyboard=None) -> None:
        try:
            self.telegram.send_message(chat_id, text, keyboard)
        except TelegramError as e:
            logger.error("Telegram API error: %s", e)

    def process_update(self, update: Update) -> bool:
        """
        Handle one webhook delivery.

        Returns False when the update was a retried delivery and was dropped.
        """
        if not self.dedup.admit(update.update_id):
            logger.info("Duplicate update %s dropped", update.update_id)
            return False

        if update.message is not None:
            self.handle_message(update.message)
        elif update.callback_query is not None:
            self.flow.handle_callback(update.callback_query)
        return True

    def handle_message(self, msg: Message) -> None:
        chat_id = msg.chat.id
        command = parse_command(msg.text)

        if command in ("start", "menu"):
            self.catalog.ensure_loaded()
            self._send(chat_id, MENU_PROMPT, self.catalog.build_main_menu())
        elif command == "list":
            self.catalog.ensure_loaded()
            self._send(chat_id, self.catalog.list_text())
        elif command == "undo":
            self.handle_undo(msg)
        elif command == "help":
            self._send(chat_id, HELP_TEXT)
        elif command is None:
            self.flow.handle_quantity_message(msg)

    def handle_undo(self, msg: Message) -> None:
        chat_id = msg.chat.id
        user_id = msg.from_user.id if msg.from_user else 0

        try:
            result = self.ledger.undo(chat_id, user_id)
        except LedgerError as e:
            logger.error("undo error: %s", e)
            self.telegram.notify_admin(f"⚠ Sheets error: {e}")
            self._send(chat_id, UNDO_FAILED_TEXT)
            return

        if result.status == UndoStatus.NOTHING:
            self._send(chat_id, UNDO_NOTHING_TEXT)
        elif result.status == UndoStatus.STALE:
            self._send(chat_id, UNDO_STALE_TEXT)
        elif result.summary:
            self._send(chat_id, f"Undid your last order: {html.escape(result.summary)}")
        else:
            self._send(chat_id, "Undid your last order.")
