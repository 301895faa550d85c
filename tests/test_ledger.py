"""
Tests for the order ledger: appends, row pointers and undo.
"""
import pytest

from coffee_bot.ledger import LedgerError, OrderLedger, parse_row_number, undo_key
from coffee_bot.schemas.orders import UndoStatus


class TestParseRowNumber:
    @pytest.mark.parametrize("locator,expected", [
        ("Orders!A7:L7", 7),
        ("'Orders'!A12:L12", 12),
        ("Orders!A1:L1", 1),
        ("Orders!A120:L120", 120),
        ("row 42", 42),
        ("", -1),
        (None, -1),
        ("Orders!A:L", -1),
    ])
    def test_parse(self, locator, expected):
        assert parse_row_number(locator) == expected


class TestOrderRecord:
    def test_row_has_twelve_columns_in_order(self, make_order):
        row = make_order(qty=2, callback_id="cb-9").to_row()
        assert len(row) == 12
        assert row[1:] == [100, 7, "@alice", "Alice Smith", "Latte", 3.0, 2, 6.0, False, 555, "cb-9"]
        assert row[0].endswith("Z")

    def test_describe(self, make_order):
        assert make_order(qty=2).describe() == "2× Latte"


class TestAppend:
    """Appending orders and recording the undo pointer."""

    def test_append_records_pointer(self, ledger, backend, make_order):
        pointer = ledger.append(make_order(callback_id="cb-1"))

        assert pointer.row == 2
        assert pointer.summary == "1× Latte"
        assert ledger.last_pointer(100, 7) == pointer
        assert len(backend.orders()) == 1

    def test_newer_order_overwrites_pointer(self, ledger, make_order):
        ledger.append(make_order(callback_id="cb-1"))
        ledger.append(make_order(callback_id="cb-2", qty=2))

        assert ledger.last_pointer(100, 7).row == 3
        assert ledger.last_pointer(100, 7).callback_id == "cb-2"

    def test_pointers_are_per_actor(self, ledger, make_order):
        ledger.append(make_order(user_id=7, callback_id="a"))
        ledger.append(make_order(user_id=8, callback_id="b"))
        ledger.append(make_order(user_id=7, chat_id=200, callback_id="c"))

        assert ledger.last_pointer(100, 7).row == 2
        assert ledger.last_pointer(100, 8).row == 3
        assert ledger.last_pointer(200, 7).row == 4

    def test_failure_raises_and_keeps_previous_pointer(self, ledger, backend, make_order):
        ledger.append(make_order(callback_id="cb-1"))
        backend.fail = True

        with pytest.raises(LedgerError):
            ledger.append(make_order(callback_id="cb-2"))

        assert ledger.last_pointer(100, 7).callback_id == "cb-1"

    def test_unparseable_locator_clears_pointer(self, ledger, backend, make_order):
        """The order is saved but cannot be undone."""
        ledger.append(make_order(callback_id="cb-1"))
        backend.locator = "Orders"

        assert ledger.append(make_order(callback_id="cb-2")) is None
        assert ledger.last_pointer(100, 7) is None
        assert len(backend.orders()) == 2

    def test_unconfigured_ledger(self, store, make_order):
        with pytest.raises(LedgerError):
            OrderLedger(None, store).append(make_order())


class TestUndo:
    """Undoing the actor's last order."""

    def test_undo_deletes_row_and_pointer(self, ledger, backend, store, make_order):
        ledger.append(make_order(qty=2, callback_id="cb-1"))

        result = ledger.undo(100, 7)

        assert result.status == UndoStatus.UNDONE
        assert result.undone
        assert result.summary == "2× Latte"
        assert backend.orders() == []
        assert store.get(undo_key(100, 7)) is None

    def test_nothing_to_undo_touches_nothing(self, ledger, backend):
        result = ledger.undo(100, 7)

        assert result.status == UndoStatus.NOTHING
        assert backend.calls == []

    def test_second_undo_reports_nothing(self, ledger, make_order):
        ledger.append(make_order())
        ledger.undo(100, 7)
        assert ledger.undo(100, 7).status == UndoStatus.NOTHING

    def test_only_latest_order_is_undoable(self, ledger, backend, make_order):
        ledger.append(make_order(callback_id="cb-1", drink="Mocha"))
        ledger.append(make_order(callback_id="cb-2", drink="Latte"))

        ledger.undo(100, 7)

        assert [r[5] for r in backend.orders()] == ["Mocha"]
        assert ledger.undo(100, 7).status == UndoStatus.NOTHING

    def test_shifted_row_is_not_deleted(self, ledger, backend, make_order):
        """After another actor's undo shifts rows up, a stale pointer deletes nothing."""
        ledger.append(make_order(user_id=7, callback_id="a"))
        ledger.append(make_order(user_id=8, callback_id="b"))
        ledger.append(make_order(user_id=9, callback_id="c"))

        assert ledger.undo(100, 7).undone
        before = [list(r) for r in backend.rows]

        result = ledger.undo(100, 8)

        assert result.status == UndoStatus.STALE
        assert backend.rows == before
        assert ledger.last_pointer(100, 8) is None

    def test_delete_failure_keeps_pointer(self, ledger, backend, make_order):
        ledger.append(make_order(callback_id="cb-1"))
        backend.fail = True

        with pytest.raises(LedgerError):
            ledger.undo(100, 7)

        assert ledger.last_pointer(100, 7) is not None
        backend.fail = False
        assert ledger.undo(100, 7).undone


class TestStateStoreFailure:
    """The sheet is the record; a lost undo pointer never loses an order."""

    def test_pointer_write_failure_keeps_order(self, backend, failing_store, make_order):
        ledger = OrderLedger(backend, failing_store)
        failing_store.fail_prefixes.add("undo")

        assert ledger.append(make_order(callback_id="cb-1")) is None
        assert len(backend.orders()) == 1

    def test_pointer_write_failure_drops_older_pointer(self, backend, failing_store, make_order):
        ledger = OrderLedger(backend, failing_store)
        ledger.append(make_order(callback_id="cb-1", drink="Mocha"))
        failing_store.fail_prefixes.add("undo")
        failing_store.fail_ops = {"write"}

        assert ledger.append(make_order(callback_id="cb-2")) is None

        assert ledger.undo(100, 7).status == UndoStatus.NOTHING
        assert [r[5] for r in backend.orders()] == ["Mocha", "Latte"]

    def test_pointer_read_failure_raises_ledger_error(self, backend, failing_store, make_order):
        ledger = OrderLedger(backend, failing_store)
        ledger.append(make_order(callback_id="cb-1"))
        failing_store.fail_reads = True

        with pytest.raises(LedgerError):
            ledger.undo(100, 7)
        assert len(backend.orders()) == 1

    def test_pointer_clear_failure_after_undo(self, backend, failing_store, make_order):
        ledger = OrderLedger(backend, failing_store)
        ledger.append(make_order(callback_id="cb-1"))
        failing_store.fail_prefixes.add("undo")

        assert ledger.undo(100, 7).undone
        assert backend.orders() == []
