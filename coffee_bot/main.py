# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import json
import logging
import threading
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .bot import BotService
from .config import (
    DEDUP_CAPACITY,
    MENU_RANGE,
    ONCE_GATE_CAPACITY,
    ORDERS_SHEET_TITLE,
    SHEET_ID,
    STATE_DATABASE_URL,
    STATE_STORE_CAPACITY,
)
from .db import create_session_factory, create_state_engine
from .google_sheets import SheetsClient, SheetsConfigError
from .idempotency import Deduplicator, OnceGate
from .ledger import OrderLedger, SheetsLedgerBackend
from .logging_config import setup_logging
from .menu import Catalog
from .order_flow import OrderFlow
from .schemas.telegram import Update
from .services.state_store import InMemoryStateStore, SqlStateStore
from .telegram_client import TelegramClient

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)


# ---------- Service wiring ----------


def build_bot_service(
    telegram: Optional[TelegramClient] = None,
    sheets: Optional[SheetsClient] = None,
    store=None,
) -> BotService:
    """
    Assemble the bot from configuration.

    Without SHEET_ID (or with broken credentials) the bot still answers, but
    every save and undo fails with an operator notification.
    """
    telegram = telegram or TelegramClient()

    if sheets is None and SHEET_ID:
        try:
            sheets = SheetsClient.from_env(SHEET_ID)
        except SheetsConfigError as e:
            logger.error("Google Sheets disabled: %s", e)

    if store is None:
        if STATE_DATABASE_URL:
            store = SqlStateStore(
                create_session_factory(create_state_engine(STATE_DATABASE_URL)),
                cache=InMemoryStateStore(STATE_STORE_CAPACITY),
            )
        else:
            store = InMemoryStateStore(STATE_STORE_CAPACITY)

    loader = None
    if sheets is not None:
        loader = lambda: sheets.read_values(MENU_RANGE, "UNFORMATTED_VALUE")  # noqa: E731
    catalog = Catalog(loader=loader)

    backend = SheetsLedgerBackend(sheets, ORDERS_SHEET_TITLE) if sheets is not None else None
    ledger = OrderLedger(backend, store)
    flow = OrderFlow(catalog, telegram, ledger, store, OnceGate(ONCE_GATE_CAPACITY))

    logger.info(
        "Bot ready (telegram=%s, sheets=%s, store=%s)",
        "live" if telegram.is_configured() else "mock",
        "on" if backend is not None else "off",
        type(store).__name__,
    )
    return BotService(flow, ledger, telegram, catalog, Deduplicator(DEDUP_CAPACITY))


_service: Optional[BotService] = None
_service_lock = threading.Lock()


def get_bot_service() -> BotService:
    """Process-wide BotService, built on first use."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = build_bot_service()
    return _service


# ---------- App ----------


app = FastAPI(
    title="Coffee Bot",
    description="Telegram webhook for coffee orders",
    version="1.0.0",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Bot", "description": "Telegram webhook"},
    ],
)


@app.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    """Health check endpoint. Returns ok if the service is running."""
    return {"status": "ok"}


@app.post("/api/bot", tags=["Bot"])
async def telegram_webhook(
    request: Request,
    service: BotService = Depends(get_bot_service),
) -> PlainTextResponse:
    """
    Telegram webhook.

    Always answers 200 "OK", including for malformed bodies and handler
    errors. Redelivered updates are dropped by the deduplicator.
    """
    raw = await request.body()
    try:
        update = Update.model_validate(json.loads(raw or b"{}"))
    except (ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed update: %s", e)
        return PlainTextResponse("OK")

    try:
        await run_in_threadpool(service.process_update, update)
    except Exception as e:
        logger.exception("Bot error on update %s", update.update_id)
        await run_in_threadpool(service.telegram.notify_admin, f"⚠ Bot error: {e}")

    return PlainTextResponse("OK")


@app.api_route("/api/bot", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def telegram_webhook_wrong_method() -> JSONResponse:
    return JSONResponse({"ok": True}, status_code=405)
