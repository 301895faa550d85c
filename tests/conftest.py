import pytest
from fastapi.testclient import TestClient

from coffee_bot.bot import BotService
from coffee_bot.google_sheets import SheetsError
from coffee_bot.idempotency import Deduplicator, OnceGate
from coffee_bot.ledger import OrderLedger
from coffee_bot.menu import DEFAULT_DRINKS, Catalog
from coffee_bot.order_flow import OrderFlow
from coffee_bot.schemas.orders import OrderRecord
from coffee_bot.schemas.telegram import CallbackQuery, Message, Update
from coffee_bot.services.state_store import InMemoryStateStore, StateStoreError
from coffee_bot.telegram_client import TelegramClient, TelegramError

ADMIN_CHAT_ID = 999
CHAT_ID = 100
CARD_ID = 555
USER_ID = 7


class FakeTelegram(TelegramClient):
    """TelegramClient that records every Bot API call instead of sending it.

    Methods listed in fail_methods raise TelegramError, like a timed-out call.
    """

    def __init__(self):
        super().__init__(token="test-token", admin_chat_id=str(ADMIN_CHAT_ID))
        self.calls = []
        self.fail_methods = set()

    def call(self, method, payload, timeout=None):
        body = {k: v for k, v in payload.items() if v is not None}
        if method in self.fail_methods:
            raise TelegramError(f"Telegram {method} failed: timed out")
        self.calls.append((method, body))
        return {}

    def bodies(self, method):
        return [body for m, body in self.calls if m == method]

    def edits(self):
        return self.bodies("editMessageText")

    def sent(self, chat_id=CHAT_ID):
        return [b["text"] for b in self.bodies("sendMessage") if b["chat_id"] == chat_id]

    def acks(self):
        return self.bodies("answerCallbackQuery")


class FakeLedgerBackend:
    """In-memory stand-in for one spreadsheet tab.

    rows[0] is sheet row 1 (the header). Deleting a row shifts later rows up,
    exactly like the real sheet.
    """

    def __init__(self):
        self.rows = []
        self.fail = False
        self.locator = None  # overrides the updatedRange returned by append_row
        self.calls = []

    def _check(self, op):
        self.calls.append(op)
        if self.fail:
            raise SheetsError(f"Sheets {op} failed: timed out")

    def ensure_ready(self):
        self._check("ensure_ready")
        if not self.rows:
            self.rows.append(["Timestamp", "...", "CallbackId"])

    def append_row(self, values):
        self._check("append")
        self.rows.append(list(values))
        if self.locator is not None:
            return self.locator
        n = len(self.rows)
        return f"Orders!A{n}:L{n}"

    def read_row(self, row):
        self._check("read")
        if 1 <= row <= len(self.rows):
            return list(self.rows[row - 1])
        return []

    def delete_row(self, row):
        self._check("delete")
        del self.rows[row - 1]

    def orders(self):
        return self.rows[1:]


class FailingStateStore(InMemoryStateStore):
    """InMemoryStateStore whose writes fail for keys with one of the given prefixes.

    Only the operations named in fail_ops fail ("write", "delete"). Reads
    fail too when fail_reads is set, like a database that went away.
    """

    def __init__(self, max_entries=100):
        super().__init__(max_entries)
        self.fail_prefixes = set()
        self.fail_ops = {"write", "delete"}
        self.fail_reads = False

    def _check(self, op, key):
        if op in self.fail_ops and any(key.startswith(p) for p in self.fail_prefixes):
            raise StateStoreError(f"State {op} failed for {key!r}: database is locked")

    def get(self, key):
        if self.fail_reads:
            raise StateStoreError(f"State read failed for {key!r}: database is locked")
        return super().get(key)

    def set(self, key, value):
        self._check("write", key)
        super().set(key, value)

    def delete(self, key):
        self._check("delete", key)
        return super().delete(key)


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def backend():
    return FakeLedgerBackend()


@pytest.fixture
def store():
    return InMemoryStateStore(max_entries=100)


@pytest.fixture
def failing_store():
    return FailingStateStore(max_entries=100)


@pytest.fixture
def catalog():
    return Catalog(DEFAULT_DRINKS)


@pytest.fixture
def ledger(backend, store):
    return OrderLedger(backend, store)


@pytest.fixture
def flow(catalog, telegram, ledger, store):
    return OrderFlow(catalog, telegram, ledger, store, OnceGate(100))


@pytest.fixture
def bot(flow, ledger, telegram, catalog):
    return BotService(flow, ledger, telegram, catalog, Deduplicator(100))


@pytest.fixture
def client(bot):
    """FastAPI TestClient with the webhook wired to the fake-backed bot."""
    from coffee_bot.main import app, get_bot_service

    app.dependency_overrides[get_bot_service] = lambda: bot
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_callback():
    """Factory for a button press on the order card."""
    counter = {"n": 0}

    def _make(data, user_id=USER_ID, chat_id=CHAT_ID, message_id=CARD_ID, cb_id=None, username="alice"):
        counter["n"] += 1
        return CallbackQuery.model_validate({
            "id": cb_id or f"cb-{counter['n']}",
            "from": {"id": user_id, "first_name": "Alice", "last_name": "Smith", "username": username},
            "message": {"message_id": message_id, "chat": {"id": chat_id}, "text": "card"},
            "data": data,
        })

    return _make


@pytest.fixture
def make_message():
    """Factory for a text message from a customer."""
    counter = {"n": 1000}

    def _make(text, user_id=USER_ID, chat_id=CHAT_ID):
        counter["n"] += 1
        return Message.model_validate({
            "message_id": counter["n"],
            "chat": {"id": chat_id},
            "from": {"id": user_id, "first_name": "Alice"},
            "text": text,
        })

    return _make


@pytest.fixture
def make_update():
    """Factory for webhook updates with increasing update_id."""
    counter = {"n": 0}

    def _make(message=None, callback_query=None, update_id=None):
        counter["n"] += 1
        return Update(
            update_id=update_id if update_id is not None else counter["n"],
            message=message,
            callback_query=callback_query,
        )

    return _make


@pytest.fixture
def make_order():
    def _make(user_id=USER_ID, chat_id=CHAT_ID, callback_id="cb-1", qty=1, drink="Latte"):
        return OrderRecord(
            chat_id=chat_id,
            user_id=user_id,
            username="@alice",
            full_name="Alice Smith",
            drink=drink,
            price=3.0,
            qty=qty,
            total=3.0 * qty,
            oat_milk=False,
            message_id=CARD_ID,
            callback_id=callback_id,
        )

    return _make
