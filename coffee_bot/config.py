"""
Configuration Module for Coffee Bot
===================================

This module centralizes the environment variables and constants used by the
Telegram ordering bot. Every setting is read once at import time with a
sensible default so the bot can start in mock mode without any credentials.

Configuration Categories:
-------------------------
- **Telegram**: Bot token and the optional operator chat that receives
  error notifications.

- **Google Sheets**: Spreadsheet id, tab titles and service-account
  credentials for the order ledger and the remote menu.

- **Timeouts**: Upper bounds for every external call. A call that exceeds
  its timeout is treated as a failure, never retried.

- **Idempotency**: Capacities of the bounded recency sets used for update
  deduplication and one-shot UI guards.

- **Pricing & Quantity**: Modifier price adjustments and the accepted
  quantity range.

- **State Store**: Optional database URL for a durable keyed state store.
  When unset, conversation state lives in process memory only.

Environment Variables:
----------------------
- BOT_TOKEN: Telegram bot token (mock mode when empty)
- ADMIN_CHAT_ID: Operator chat id for error notifications (optional)
- SHEET_ID: Google spreadsheet id (orders are not saved when empty)
- GOOGLE_SERVICE_ACCOUNT_EMAIL: Service account email
- GOOGLE_PRIVATE_KEY / GOOGLE_PRIVATE_KEY_BASE64: Service account key
- TELEGRAM_TIMEOUT_SECONDS: Telegram call timeout (default: 6.5)
- SHEETS_TIMEOUT_SECONDS: Sheets call timeout (default: 8)
- STATE_DATABASE_URL: SQLAlchemy URL for the durable state store (optional)

Usage:
------
    from coffee_bot.config import OAT_UPCHARGE, QTY_MAX, SHEET_ID
"""

import os
from typing import List


# =============================================================================
# Telegram Configuration
# =============================================================================

BOT_TOKEN: str = os.getenv("BOT_TOKEN", "").strip()

# Operator channel for ledger/handler failures. Empty disables notifications.
ADMIN_CHAT_ID: str = os.getenv("ADMIN_CHAT_ID", "").strip()

TELEGRAM_API_BASE: str = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")


# =============================================================================
# Google Sheets Configuration
# =============================================================================
# The same spreadsheet holds the append-only "Orders" tab and the optional
# "Menu" tab (columns: name, price, oat).

SHEET_ID: str = os.getenv("SHEET_ID", "").strip()
ORDERS_SHEET_TITLE: str = os.getenv("ORDERS_SHEET_TITLE", "Orders")
MENU_RANGE: str = os.getenv("MENU_RANGE", "Menu!A:C")

GOOGLE_SERVICE_ACCOUNT_EMAIL: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
GOOGLE_PRIVATE_KEY: str = os.getenv("GOOGLE_PRIVATE_KEY", "")
GOOGLE_PRIVATE_KEY_BASE64: str = os.getenv("GOOGLE_PRIVATE_KEY_BASE64", "")

SHEETS_SCOPES: List[str] = ["https://www.googleapis.com/auth/spreadsheets"]

# Fixed column order of the Orders tab (A-L)
ORDER_COLUMNS: List[str] = [
    "Timestamp",
    "ChatId",
    "UserId",
    "Username",
    "FullName",
    "Drink",
    "Price",
    "Qty",
    "Total",
    "OatMilk",
    "MessageId",
    "CallbackId",
]


# =============================================================================
# Timeouts
# =============================================================================

TELEGRAM_TIMEOUT_SECONDS: float = float(os.getenv("TELEGRAM_TIMEOUT_SECONDS", "6.5"))
SHEETS_TIMEOUT_SECONDS: float = float(os.getenv("SHEETS_TIMEOUT_SECONDS", "8"))


# =============================================================================
# Idempotency Configuration
# =============================================================================
# An update older than the last DEDUP_CAPACITY admitted updates may be
# processed again. Telegram only retries recent failures, so this is enough.

DEDUP_CAPACITY: int = int(os.getenv("DEDUP_CAPACITY", "1000"))
ONCE_GATE_CAPACITY: int = int(os.getenv("ONCE_GATE_CAPACITY", "1000"))

# Maximum entries kept by the in-memory state store before LRU eviction
STATE_STORE_CAPACITY: int = int(os.getenv("STATE_STORE_CAPACITY", "5000"))


# =============================================================================
# Pricing & Quantity
# =============================================================================

OAT_UPCHARGE: float = float(os.getenv("OAT_UPCHARGE", "0.50"))
BYOC_DISCOUNT: float = float(os.getenv("BYOC_DISCOUNT", "0.50"))

QTY_MIN: int = 1
QTY_MAX: int = int(os.getenv("QTY_MAX", "10"))

CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "$")


# =============================================================================
# State Store
# =============================================================================

STATE_DATABASE_URL: str = os.getenv("STATE_DATABASE_URL", "").strip()


# =============================================================================
# Bot Commands
# =============================================================================
# Registered with Telegram by scripts/set_bot_commands.py

BOT_COMMANDS = [
    {"command": "menu", "description": "Show the drinks menu"},
    {"command": "list", "description": "List drinks with prices"},
    {"command": "undo", "description": "Undo your last order"},
    {"command": "help", "description": "How to order"},
]
