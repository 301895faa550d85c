"""
Schemas Package for Coffee Bot
==============================

Pydantic models shared across the bot.

Schema Organization:
--------------------
- **telegram.py**: Inbound Telegram updates and outbound inline keyboards
- **actions.py**: Typed action tokens decoded from callback_data
- **orders.py**: Committed orders, ledger row pointers and undo results
"""

from .actions import (
    Action,
    CancelOrder,
    ConfirmOrder,
    CupChoice,
    MilkChoice,
    SelectItem,
    parse_action,
)
from .orders import OrderRecord, RowPointer, UndoResult, UndoStatus
from .telegram import (
    CallbackQuery,
    Chat,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    Update,
    User,
)

__all__ = [
    "Action",
    "CancelOrder",
    "ConfirmOrder",
    "CupChoice",
    "MilkChoice",
    "SelectItem",
    "parse_action",
    "OrderRecord",
    "RowPointer",
    "UndoResult",
    "UndoStatus",
    "CallbackQuery",
    "Chat",
    "InlineKeyboardButton",
    "InlineKeyboardMarkup",
    "Message",
    "Update",
    "User",
]
