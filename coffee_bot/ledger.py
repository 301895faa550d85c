"""
Order Ledger: append-only order log with per-actor undo.

Each confirmed order becomes one row of the Orders tab. The 1-based row
number is parsed from the store's own acknowledgment of the write and kept in
the state store under the (chat, user) pair so that actor can undo it later.

Undo Semantics:
---------------
- One pointer per (chat, user). A newer order overwrites the previous pointer,
  which makes the older order non-undoable.
- Undo deletes the row by position. Deleting a row shifts every row below it
  up by one, and other actors' pointers are NOT re-pointed. Before deleting,
  the row's CallbackId column is compared with the event id recorded at append
  time; on mismatch nothing is deleted and the pointer is dropped (STALE).
- No operation is retried. Failures raise LedgerError and leave the pointer in
  place so the actor can try again.
- A state store failure after a successful append is logged; the order stays
  saved but cannot be undone.
"""

import logging
import re
from typing import Any, List, Optional, Protocol

from .config import ORDER_COLUMNS, ORDERS_SHEET_TITLE
from .google_sheets import SheetsClient, SheetsConfigError, SheetsError
from .idempotency import key_from_parts
from .schemas.orders import OrderRecord, RowPointer, UndoResult, UndoStatus
from .services.state_store import StateStore, StateStoreError

logger = logging.getLogger(__name__)

# Position of the CallbackId column in ORDER_COLUMNS
EVENT_ID_COLUMN = ORDER_COLUMNS.index("CallbackId")

_RANGE_RE = re.compile(r"![A-Z]+(\d+):[A-Z]+(\d+)", re.IGNORECASE)
_NUM_RE = re.compile(r"(\d+)")


class LedgerError(RuntimeError):
    """An append or undo could not be completed."""


class LedgerBackend(Protocol):
    def ensure_ready(self) -> None:
        ...

    def append_row(self, values: List[Any]) -> str:
        ...

    def read_row(self, row: int) -> List[Any]:
        ...

    def delete_row(self, row: int) -> None:
        ...


class SheetsLedgerBackend:
    """LedgerBackend over one tab of a Google spreadsheet."""

    def __init__(self, client: SheetsClient, title: str = ORDERS_SHEET_TITLE):
        self.client = client
        self.title = title

    def ensure_ready(self) -> None:
        self.client.ensure_sheet(self.title, ORDER_COLUMNS)

    def append_row(self, values: List[Any]) -> str:
        return self.client.append_row(self.title, values)

    def read_row(self, row: int) -> List[Any]:
        return self.client.read_row(self.title, row, len(ORDER_COLUMNS))

    def delete_row(self, row: int) -> None:
        self.client.delete_row(self.title, row)


def parse_row_number(updated_range: Optional[str]) -> int:
    """
    Extract the appended row from a locator such as 'Orders!A7:L7'.

    Falls back to the last integer in the string; returns -1 when none found.
    """
    if not updated_range:
        return -1
    m = _RANGE_RE.search(updated_range)
    if m:
        return int(m.group(2))
    nums = _NUM_RE.findall(updated_range)
    if nums:
        return int(nums[-1])
    return -1


def undo_key(chat_id: int, user_id: int) -> str:
    return key_from_parts("undo", chat_id, user_id)


class OrderLedger:
    def __init__(self, backend: Optional[LedgerBackend], store: StateStore):
        self.backend = backend
        self.store = store

    def _require_backend(self) -> LedgerBackend:
        if self.backend is None:
            raise LedgerError("Order ledger is not configured (SHEET_ID or credentials missing)")
        return self.backend

    def append(self, order: OrderRecord) -> Optional[RowPointer]:
        """
        Write one order row and remember where it landed.

        Returns the RowPointer, or None when the order was saved but is not
        undoable: the store acknowledged the write without a usable row
        number, or the pointer could not be recorded.

        Raises:
            LedgerError: if the write failed or timed out
        """
        backend = self._require_backend()
        try:
            backend.ensure_ready()
            locator = backend.append_row(order.to_row())
        except (SheetsError, SheetsConfigError) as e:
            raise LedgerError(str(e)) from e

        key = undo_key(order.chat_id, order.user_id)
        row = parse_row_number(locator)
        try:
            if row < 1:
                logger.warning("Appended order but could not parse row from %r", locator)
                self.store.delete(key)
                return None

            pointer = RowPointer(row=row, summary=order.describe(), callback_id=order.callback_id)
            self.store.set(key, pointer.model_dump())
        except StateStoreError as e:
            # The row is written; only undo is lost. An older pointer must not
            # outlive it, or /undo would remove the previous order.
            logger.error("Order saved at %r but undo pointer not recorded: %s", locator, e)
            self._forget(key)
            return None

        logger.info(
            "Order saved: chat=%s user=%s row=%d %s",
            order.chat_id, order.user_id, row, pointer.summary,
        )
        return pointer

    def last_pointer(self, chat_id: int, user_id: int) -> Optional[RowPointer]:
        entry = self.store.get(undo_key(chat_id, user_id))
        return RowPointer(**entry) if entry else None

    def _forget(self, key: str) -> None:
        try:
            self.store.delete(key)
        except StateStoreError as e:
            # A leftover pointer is caught by the CallbackId check on the next undo
            logger.error("Could not clear undo pointer %s: %s", key, e)

    def undo(self, chat_id: int, user_id: int) -> UndoResult:
        """
        Delete the actor's last appended order.

        Raises:
            LedgerError: if the pointer or the row could not be read, or the
                delete failed
        """
        key = undo_key(chat_id, user_id)
        try:
            pointer = self.last_pointer(chat_id, user_id)
        except StateStoreError as e:
            raise LedgerError(str(e)) from e
        if pointer is None:
            return UndoResult(status=UndoStatus.NOTHING)

        backend = self._require_backend()
        try:
            if pointer.callback_id:
                current = backend.read_row(pointer.row)
                found = current[EVENT_ID_COLUMN] if len(current) > EVENT_ID_COLUMN else None
                if str(found) != pointer.callback_id:
                    logger.warning(
                        "Undo pointer stale: chat=%s user=%s row=%d holds %r, expected %r",
                        chat_id, user_id, pointer.row, found, pointer.callback_id,
                    )
                    self._forget(key)
                    return UndoResult(status=UndoStatus.STALE, row=pointer.row, summary=pointer.summary)
            backend.delete_row(pointer.row)
        except (SheetsError, SheetsConfigError) as e:
            raise LedgerError(str(e)) from e

        self._forget(key)
        logger.info("Order undone: chat=%s user=%s row=%d", chat_id, user_id, pointer.row)
        return UndoResult(status=UndoStatus.UNDONE, row=pointer.row, summary=pointer.summary)
