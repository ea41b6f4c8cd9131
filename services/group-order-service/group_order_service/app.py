from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .bot import GroupOrderBot
from .catalog import CatalogManager
from .coordinator import GroupOrderCoordinator
from .database import init_db
from .ledger import LedgerEngine
from .notifier import Notifier
from .registration import RegistrationWorkflow
from .repository import CatalogRepository, GroupOrderRepository, ParticipantRepository
from .sessions import DEFAULT_TTL_SECONDS, InMemorySessionStore
from .telegram_client import LoggingTransport, TelegramClient, Transport
from . import schemas

logger = logging.getLogger(__name__)


def build_transport() -> Transport:
    mode = os.environ.get("TRANSPORT_MODE", "log").lower()
    if mode == "telegram":
        token = os.environ.get("TELEGRAM_BOT_TOKEN")
        if not token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN must be set when TRANSPORT_MODE=telegram")
        base_url = os.environ.get("TELEGRAM_API_URL", "https://api.telegram.org")
        return TelegramClient(token, base_url)
    return LoggingTransport(record=False)


def build_bot(transport: Transport | None = None) -> GroupOrderBot:
    notifier = Notifier(
        transport or build_transport(),
        max_workers=int(os.environ.get("NOTIFY_MAX_WORKERS", "8")),
    )
    sessions = InMemorySessionStore(
        ttl_seconds=float(os.environ.get("SESSION_TTL_SECONDS", DEFAULT_TTL_SECONDS))
    )
    participants = ParticipantRepository()
    orders = GroupOrderRepository()
    catalog = CatalogManager(CatalogRepository())
    ledger = LedgerEngine(orders, notifier)
    return GroupOrderBot(
        participants=participants,
        registration=RegistrationWorkflow(participants, sessions, notifier),
        catalog=catalog,
        coordinator=GroupOrderCoordinator(orders, participants, catalog, ledger, sessions, notifier),
        ledger=ledger,
        sessions=sessions,
        notifier=notifier,
    )


def create_app(bot: GroupOrderBot | None = None) -> FastAPI:
    if bot is None:
        init_db()
        bot = build_bot()
    webhook_secret = os.environ.get("TELEGRAM_WEBHOOK_SECRET")

    app = FastAPI(
        title="Group Order Service",
        version="0.1.0",
        description="Chat bot coordinating group food orders.",
    )
    allowed_origins = [
        origin.strip() for origin in os.environ.get("ALLOWED_ORIGINS", "*").split(",")
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz", response_model=schemas.HealthResponse)
    async def healthz() -> schemas.HealthResponse:
        return schemas.HealthResponse(status="ok")

    # Plain def: FastAPI runs it on the worker thread pool.
    @app.post("/telegram/webhook", response_model=schemas.WebhookAck)
    def telegram_webhook(
        update: schemas.TelegramUpdate,
        secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
    ) -> schemas.WebhookAck:
        if webhook_secret and secret_token != webhook_secret:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret token")
        event = update.to_event()
        if event is None:
            logger.debug("Ignoring update %s without text or callback", update.update_id)
            return schemas.WebhookAck()
        bot.handle(event)
        return schemas.WebhookAck()

    return app
