"""
Drinks catalog, pricing and inline keyboard builders.

The catalog starts from a built-in static list and can be replaced once per
process by the "Menu" tab of the spreadsheet (columns: name, price, oat). A
missing, empty or invalid remote menu leaves the static list in place.

Callback data on every button is produced by the typed actions in
schemas/actions.py so the keyboards and the parser share one grammar.
"""

import html
import logging
import math
import re
import threading
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel

from .config import BYOC_DISCOUNT, CURRENCY_SYMBOL, OAT_UPCHARGE, QTY_MAX, QTY_MIN
from .schemas.actions import CancelOrder, ConfirmOrder, CupChoice, MilkChoice, SelectItem
from .schemas.telegram import InlineKeyboardButton, InlineKeyboardMarkup

logger = logging.getLogger(__name__)


class Drink(BaseModel):
    name: str
    price: float
    oat: bool = False  # eligible for the milk prompt


DEFAULT_DRINKS: List[Drink] = [
    Drink(name="Americano", price=3.0, oat=False),
    Drink(name="Honey Americano", price=3.5, oat=False),
    Drink(name="Latte", price=3.0, oat=True),
    Drink(name="Biscoff Latte", price=3.5, oat=True),
    Drink(name="Peanut Butter Latte", price=3.5, oat=True),
    Drink(name="Cappuccino", price=3.8, oat=True),
    Drink(name="Mocha", price=4.5, oat=True),
    Drink(name="Chocolate", price=3.0, oat=True),
    Drink(name="Matcha Latte", price=3.5, oat=True),
    Drink(name="Salted Honey Matcha", price=4.0, oat=True),
    Drink(name="Strawberry Matcha", price=4.0, oat=True),
    Drink(name="Hibiscus Strawberry Tea", price=2.5, oat=False),
    Drink(name="Hibiscus Lemonade", price=3.0, oat=False),
]

MENU_PROMPT = "Choose a drink:"


# =============================================================================
# Pricing
# =============================================================================

def fmt_money(amount: float) -> str:
    return f"{CURRENCY_SYMBOL}{amount:.2f}"


def unit_price(base: float, oat: bool, byoc: bool) -> float:
    """Base price adjusted by modifiers, rounded to cents."""
    price = base + (OAT_UPCHARGE if oat else 0.0) - (BYOC_DISCOUNT if byoc else 0.0)
    return round(price, 2)


def line_total(price: float, qty: int) -> float:
    return round(round(price, 2) * qty, 2)


_QTY_RE = re.compile(r"^[0-9]+$")


def parse_quantity(text: Optional[str]) -> Optional[int]:
    """
    Parse a quantity reply. Only plain decimal digits in [QTY_MIN, QTY_MAX]
    are accepted; everything else returns None.
    """
    s = (text or "").strip()
    if not _QTY_RE.match(s):
        return None
    qty = int(s)
    if qty < QTY_MIN or qty > QTY_MAX:
        return None
    return qty


def drink_label(drink: Drink, oat: bool, byoc: bool) -> str:
    """Ledger label with modifier annotations, e.g. 'Latte (oat, BYOC)'."""
    notes = []
    if oat:
        notes.append("oat")
    if byoc:
        notes.append("BYOC")
    if not notes:
        return drink.name
    return f"{drink.name} ({', '.join(notes)})"


# =============================================================================
# Catalog
# =============================================================================

def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1")
    return False


def parse_menu_rows(rows: Sequence[Sequence[Any]]) -> List[Drink]:
    """
    Turn raw sheet rows into drinks.

    A leading header row (containing "name" and "price") is skipped, as are
    rows without a name or with a non-numeric price.
    """
    if not rows:
        return []

    start = 0
    header = [str(x if x is not None else "").strip().lower() for x in rows[0]]
    if "name" in header and "price" in header:
        start = 1

    drinks: List[Drink] = []
    for row in rows[start:]:
        if not row:
            continue
        name = str(row[0]).strip() if row[0] is not None else ""
        if not name:
            continue
        try:
            price = float(row[1]) if len(row) > 1 else None
        except (TypeError, ValueError):
            price = None
        if price is None or not math.isfinite(price):
            continue
        oat = coerce_bool(row[2]) if len(row) > 2 else False
        drinks.append(Drink(name=name, price=price, oat=oat))
    return drinks


class Catalog:
    """
    The list of purchasable drinks.

    Args:
        drinks: Initial list (defaults to DEFAULT_DRINKS)
        loader: Callable returning raw menu rows; called at most once
    """

    def __init__(
        self,
        drinks: Optional[Sequence[Drink]] = None,
        loader: Optional[Callable[[], Sequence[Sequence[Any]]]] = None,
    ):
        self._drinks: List[Drink] = list(drinks if drinks is not None else DEFAULT_DRINKS)
        self._loader = loader
        self._loaded = loader is None
        self._lock = threading.Lock()

    @property
    def drinks(self) -> List[Drink]:
        return list(self._drinks)

    def __len__(self) -> int:
        return len(self._drinks)

    def ensure_loaded(self) -> None:
        """Load the remote menu once per process; failures keep the current list."""
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._loaded = True
            try:
                drinks = parse_menu_rows(self._loader())
            except Exception as e:
                logger.error("menu load error: %s", e)
                return
            if drinks:
                self._drinks = drinks
                logger.info("Loaded %d drinks from remote menu", len(drinks))
            else:
                logger.warning("Remote menu empty or invalid, keeping built-in list")

    def by_index(self, idx: Any) -> Optional[Drink]:
        """Safe lookup; anything other than an in-range int returns None."""
        if isinstance(idx, bool) or not isinstance(idx, int):
            return None
        drinks = self._drinks
        if idx < 0 or idx >= len(drinks):
            return None
        return drinks[idx]

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def list_text(self) -> str:
        header = f"(oat milk +{OAT_UPCHARGE:.2f}, BYOC -{BYOC_DISCOUNT:.2f})"
        lines = [f"• {html.escape(d.name)} — {fmt_money(d.price)}" for d in self._drinks]
        return "\n".join([header] + lines)

    def build_main_menu(self) -> InlineKeyboardMarkup:
        buttons = [
            InlineKeyboardButton(text=d.name, callback_data=SelectItem(idx=i).encode())
            for i, d in enumerate(self._drinks)
        ]
        return InlineKeyboardMarkup(inline_keyboard=chunk(buttons, 2))


def build_oat_choice(idx: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="Dairy Milk", callback_data=MilkChoice(idx=idx, oat=False).encode()),
        InlineKeyboardButton(text="Oat Milk", callback_data=MilkChoice(idx=idx, oat=True).encode()),
    ]])


def build_byoc_choice(idx: int, oat: bool) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="Yes", callback_data=CupChoice(idx=idx, oat=oat, byoc=True).encode()),
        InlineKeyboardButton(text="No", callback_data=CupChoice(idx=idx, oat=oat, byoc=False).encode()),
    ]])


def build_quantity_prompt(idx: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="↩ Cancel", callback_data=CancelOrder(idx=idx).encode()),
    ]])


def build_confirm_keyboard(idx: int, oat: bool, byoc: bool) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✅ Confirm", callback_data=ConfirmOrder(idx=idx, oat=oat, byoc=byoc).encode()),
        InlineKeyboardButton(text="↩ Cancel", callback_data=CancelOrder(idx=idx).encode()),
    ]])


def empty_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[])


def chunk(items: Sequence[Any], size: int) -> List[List[Any]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
