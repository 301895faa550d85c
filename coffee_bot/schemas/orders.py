"""
Order Schemas for Coffee Bot
============================

Models for committed orders and for the bookkeeping that makes undo possible.

- OrderRecord: one committed order. Immutable; written once as a ledger row
  and later only deleted (undo), never edited.
- RowPointer: 1-based position of an appended row plus what is needed to
  describe and verify it on undo.
- UndoResult: outcome of an undo request.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class OrderRecord(BaseModel):
    """A confirmed order, in ledger column order."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=_utc_now_iso)
    chat_id: int
    user_id: int
    username: str = ""  # "@handle" or empty
    full_name: str = ""
    drink: str  # resolved label including modifier annotations
    price: float  # unit price after modifiers
    qty: int = Field(ge=1)
    total: float
    oat_milk: bool = False
    message_id: int
    callback_id: str

    def to_row(self) -> List[Any]:
        """Values for columns A-L of the Orders tab."""
        return [
            self.timestamp,
            self.chat_id,
            self.user_id,
            self.username,
            self.full_name,
            self.drink,
            self.price,
            self.qty,
            self.total,
            self.oat_milk,
            self.message_id,
            self.callback_id,
        ]

    def describe(self) -> str:
        """Short human summary, e.g. '2× Latte (oat)'."""
        return f"{self.qty}× {self.drink}"


class RowPointer(BaseModel):
    """Where an order landed in the ledger."""

    row: int = Field(ge=1)
    summary: Optional[str] = None
    callback_id: Optional[str] = None


class UndoStatus(str, Enum):
    UNDONE = "undone"
    NOTHING = "nothing"
    STALE = "stale"


class UndoResult(BaseModel):
    status: UndoStatus
    row: Optional[int] = None
    summary: Optional[str] = None

    @property
    def undone(self) -> bool:
        return self.status == UndoStatus.UNDONE
