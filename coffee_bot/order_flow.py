"""
OrderFlow - turns button presses and quantity replies into one committed order.

This is the conversation state machine behind the order card. Each card is a
single Telegram message (chat_id, message_id) that is edited in place as the
customer moves through the steps:

    Offered ──D──> MilkPrompt ──C──> CupPrompt ──B──> QuantityEntry
       │  (non-oat item skips MilkPrompt)                  │ text "1".."10"
       │                                                   v
       └<────────────────N (any step)──────────────── Confirm ──Y──> Saved

State is not stored per card. The step a card is in is fully described by
the action token on the button that was pressed; only two things need to be
remembered between invocations, both kept in the injected StateStore:

- pending quantity: armed by a cup choice under (chat, user), consumed by the
  next valid numeric message from that user
- chosen quantity: stored under (chat, message, idx, oat, byoc) and read back
  when the matching confirm button is pressed

A OnceGate keyed by (chat, message, idx) keeps a double tap on an oat-eligible
drink from issuing the milk prompt twice. Cancel re-arms it.

Error handling:
- unknown, malformed or out-of-range tokens are acknowledged silently
- a confirm press with no stored quantity (never entered, or already saved)
  is treated as stale and acknowledged silently
- an invalid quantity is rejected with the valid range and the prompt stays armed
- a ledger failure is reported to the customer and the operator; the confirm
  button stays live so the customer can retry
- Telegram failures are logged and never abort the flow
- state store failures are logged; the customer is asked to repeat the step
  and an order already written to the ledger stays saved
"""

import html
import logging
from typing import Any, Callable

from .config import BYOC_DISCOUNT, QTY_MAX, QTY_MIN
from .idempotency import OnceGate, key_from_parts
from .ledger import LedgerError, OrderLedger
from .menu import (
    MENU_PROMPT,
    Catalog,
    Drink,
    build_byoc_choice,
    build_confirm_keyboard,
    build_oat_choice,
    build_quantity_prompt,
    drink_label,
    empty_keyboard,
    fmt_money,
    line_total,
    parse_quantity,
    unit_price,
)
from .schemas.actions import (
    CancelOrder,
    ConfirmOrder,
    CupChoice,
    MilkChoice,
    SelectItem,
    parse_action,
)
from .schemas.orders import OrderRecord
from .schemas.telegram import CallbackQuery, Message
from .services.state_store import StateStore, StateStoreError
from .telegram_client import TelegramClient, TelegramError

logger = logging.getLogger(__name__)

SAVE_FAILED_TEXT = "⚠ couldn't save, try again"
QTY_REJECTED_TEXT = f"Please send a whole number from {QTY_MIN} to {QTY_MAX}."
STATE_FAILED_TEXT = "⚠ something went wrong, try again"


def pending_key(chat_id: int, user_id: int) -> str:
    return key_from_parts("pending", chat_id, user_id)


def quantity_key(chat_id: int, message_id: int, idx: int, oat: bool, byoc: bool) -> str:
    return key_from_parts("qty", chat_id, message_id, idx, oat, byoc)


def milk_prompt_key(chat_id: int, message_id: int, idx: int) -> str:
    return key_from_parts(chat_id, message_id, idx)


class OrderFlow:
    """
    Order card state machine.

    Args:
        catalog: Drinks available for ordering
        telegram: Bot API client used to edit the card and reply
        ledger: Order ledger receiving confirmed orders
        store: Keyed store for pending and chosen quantities
        milk_gate: Once-gate for the milk prompt
    """

    def __init__(
        self,
        catalog: Catalog,
        telegram: TelegramClient,
        ledger: OrderLedger,
        store: StateStore,
        milk_gate: OnceGate,
    ):
        self.catalog = catalog
        self.telegram = telegram
        self.ledger = ledger
        self.store = store
        self.milk_gate = milk_gate

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _safe(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except TelegramError as e:
            logger.error("Telegram API error: %s", e)
            return None

    def _ack(self, cb: CallbackQuery, text: str = "") -> None:
        self._safe(self.telegram.answer_callback_query, cb.id, text)

    def _edit(self, chat_id: int, message_id: int, text: str, keyboard=None) -> None:
        self._safe(self.telegram.edit_message_text, chat_id, message_id, text, keyboard)

    def _forget(self, key: str) -> None:
        try:
            self.store.delete(key)
        except StateStoreError as e:
            logger.error("State store error: %s", e)

    # -------------------------------------------------------------------------
    # Button presses
    # -------------------------------------------------------------------------

    def handle_callback(self, cb: CallbackQuery) -> None:
        self.catalog.ensure_loaded()

        msg = cb.message
        action = parse_action(cb.data)
        if msg is None or action is None:
            self._ack(cb)
            return

        drink = self.catalog.by_index(action.idx)
        if drink is None:
            # card rendered from an older catalog
            logger.debug("Ignoring %r: index out of range", cb.data)
            self._ack(cb)
            return

        chat_id = msg.chat.id
        message_id = msg.message_id

        if isinstance(action, SelectItem):
            self._on_select(cb, chat_id, message_id, action, drink)
        elif isinstance(action, MilkChoice):
            self._show_cup_prompt(chat_id, message_id, action.idx, drink, action.oat and drink.oat)
            self._ack(cb)
        elif isinstance(action, CupChoice):
            self._on_cup(cb, chat_id, message_id, action, drink)
        elif isinstance(action, ConfirmOrder):
            self._on_confirm(cb, chat_id, message_id, action, drink)
        elif isinstance(action, CancelOrder):
            self._on_cancel(cb, chat_id, message_id, action)
        else:
            self._ack(cb)

    def _on_select(self, cb: CallbackQuery, chat_id: int, message_id: int, action: SelectItem, drink: Drink) -> None:
        if not drink.oat:
            self._show_cup_prompt(chat_id, message_id, action.idx, drink, False)
            self._ack(cb)
            return

        if not self.milk_gate.fire_once(milk_prompt_key(chat_id, message_id, action.idx)):
            self._ack(cb)
            return

        text = f"{html.escape(drink.name)} — {fmt_money(drink.price)}\nWhich milk?"
        self._edit(chat_id, message_id, text, build_oat_choice(action.idx))
        self._ack(cb)

    def _show_cup_prompt(self, chat_id: int, message_id: int, idx: int, drink: Drink, oat: bool) -> None:
        label = html.escape(drink_label(drink, oat, False))
        price = fmt_money(unit_price(drink.price, oat, False))
        text = (
            f"{label} — {price}\n"
            f"Bringing your own cup? (-{fmt_money(BYOC_DISCOUNT)})"
        )
        self._edit(chat_id, message_id, text, build_byoc_choice(idx, oat))

    def _on_cup(self, cb: CallbackQuery, chat_id: int, message_id: int, action: CupChoice, drink: Drink) -> None:
        oat = action.oat and drink.oat
        try:
            self.store.set(pending_key(chat_id, cb.from_user.id), {
                "message_id": message_id,
                "idx": action.idx,
                "oat": oat,
                "byoc": action.byoc,
            })
        except StateStoreError as e:
            # card keeps the cup prompt so the press can be repeated
            logger.error("State store error: %s", e)
            self._ack(cb, STATE_FAILED_TEXT)
            return

        label = html.escape(drink_label(drink, oat, action.byoc))
        price = fmt_money(unit_price(drink.price, oat, action.byoc))
        text = f"{label} — {price}\nHow many? Send a number from {QTY_MIN} to {QTY_MAX}."
        self._edit(chat_id, message_id, text, build_quantity_prompt(action.idx))
        self._ack(cb)

    def _on_confirm(self, cb: CallbackQuery, chat_id: int, message_id: int, action: ConfirmOrder, drink: Drink) -> None:
        oat = action.oat and drink.oat
        qkey = quantity_key(chat_id, message_id, action.idx, oat, action.byoc)
        try:
            entry = self.store.get(qkey)
        except StateStoreError as e:
            logger.error("State store error: %s", e)
            self._ack(cb, STATE_FAILED_TEXT)
            return
        if not entry:
            # no quantity chosen for this card, or already saved
            logger.debug("Ignoring %r: no stored quantity", cb.data)
            self._ack(cb)
            return
        qty = int(entry["qty"])

        price = unit_price(drink.price, oat, action.byoc)
        user = cb.from_user
        order = OrderRecord(
            chat_id=chat_id,
            user_id=user.id,
            username=user.handle,
            full_name=user.full_name,
            drink=drink_label(drink, oat, action.byoc),
            price=price,
            qty=qty,
            total=line_total(price, qty),
            oat_milk=oat,
            message_id=message_id,
            callback_id=cb.id,
        )

        try:
            self.ledger.append(order)
        except LedgerError as e:
            logger.error("appendOrder error: %s", e)
            self.telegram.notify_admin(f"⚠ Sheets error: {e}")
            self._ack(cb, SAVE_FAILED_TEXT)
            self._safe(self.telegram.send_message, chat_id, SAVE_FAILED_TEXT)
            return

        self._forget(qkey)
        text = f"Saved: {html.escape(order.describe())} — {confirm_price_text(order)}"
        self._edit(chat_id, message_id, text, empty_keyboard())
        self._ack(cb)

    def _on_cancel(self, cb: CallbackQuery, chat_id: int, message_id: int, action: CancelOrder) -> None:
        self.milk_gate.reset(milk_prompt_key(chat_id, message_id, action.idx))
        for oat in (False, True):
            for byoc in (False, True):
                self._forget(quantity_key(chat_id, message_id, action.idx, oat, byoc))

        pkey = pending_key(chat_id, cb.from_user.id)
        try:
            pending = self.store.get(pkey)
        except StateStoreError as e:
            logger.error("State store error: %s", e)
            pending = None
        if pending and pending.get("message_id") == message_id:
            self._forget(pkey)

        self._edit(chat_id, message_id, MENU_PROMPT, self.catalog.build_main_menu())
        self._ack(cb)

    # -------------------------------------------------------------------------
    # Quantity replies
    # -------------------------------------------------------------------------

    def handle_quantity_message(self, msg: Message) -> bool:
        """
        Consume a quantity reply if the sender has an armed quantity prompt.

        Returns False when the message is not part of this flow.
        """
        if msg.from_user is None:
            return False

        chat_id = msg.chat.id
        pkey = pending_key(chat_id, msg.from_user.id)
        try:
            pending = self.store.get(pkey)
        except StateStoreError as e:
            logger.error("State store error: %s", e)
            return False
        if not pending:
            return False

        qty = parse_quantity(msg.text)
        if qty is None:
            self._safe(self.telegram.send_message, chat_id, QTY_REJECTED_TEXT)
            return True

        self.catalog.ensure_loaded()
        idx = pending["idx"]
        drink = self.catalog.by_index(idx)
        if drink is None:
            self._forget(pkey)
            self._safe(
                self.telegram.send_message,
                chat_id,
                "That drink is no longer on the menu. Send /menu to start again.",
            )
            return True

        message_id = pending["message_id"]
        oat = bool(pending["oat"]) and drink.oat
        byoc = bool(pending["byoc"])

        try:
            self.store.set(quantity_key(chat_id, message_id, idx, oat, byoc), {"qty": qty})
        except StateStoreError as e:
            # prompt stays armed; the customer can send the number again
            logger.error("State store error: %s", e)
            self._safe(self.telegram.send_message, chat_id, STATE_FAILED_TEXT)
            return True
        self._forget(pkey)

        price = unit_price(drink.price, oat, byoc)
        label = html.escape(drink_label(drink, oat, byoc))
        text = (
            f"Confirm: {qty}× {label}\n"
            f"{fmt_money(price)} each, total {fmt_money(line_total(price, qty))}"
        )
        self._edit(chat_id, message_id, text, build_confirm_keyboard(idx, oat, byoc))
        return True


def confirm_price_text(order: OrderRecord) -> str:
    if order.qty == 1:
        return fmt_money(order.total)
    return f"{fmt_money(order.price)} each, total {fmt_money(order.total)}"
