from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import pytest

from group_order_service.bot import GroupOrderBot
from group_order_service.catalog import CatalogManager
from group_order_service.coordinator import GroupOrderCoordinator
from group_order_service.database import apply_schema
from group_order_service.events import InboundEvent
from group_order_service.ledger import LedgerEngine
from group_order_service.notifier import Notifier
from group_order_service.registration import RegistrationWorkflow
from group_order_service.repository import (
    CatalogRepository,
    GroupOrderRepository,
    ParticipantRepository,
)
from group_order_service.sessions import InMemorySessionStore
from group_order_service.telegram_client import LoggingTransport

ADMIN_ID = 1001
WORKER_ID = 2001
OTHER_WORKER_ID = 2002


@pytest.fixture()
def connection_factory(tmp_path):
    db_path = tmp_path / "group_orders.db"

    def factory() -> sqlite3.Connection:
        conn = sqlite3.connect(db_path, timeout=10.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    with factory() as conn:
        apply_schema(conn)
    return factory


@dataclass
class Services:
    transport: LoggingTransport
    sessions: InMemorySessionStore
    participants: ParticipantRepository
    orders: GroupOrderRepository
    catalog: CatalogManager
    ledger: LedgerEngine
    registration: RegistrationWorkflow
    coordinator: GroupOrderCoordinator
    bot: GroupOrderBot

    def text(self, sender_id: int, text: str) -> None:
        self.bot.handle(InboundEvent(sender_id=sender_id, chat_id=sender_id, text=text))

    def press(self, sender_id: int, token: str, callback_id: str = "cb-1") -> None:
        self.bot.handle(
            InboundEvent(sender_id=sender_id, chat_id=sender_id, callback_data=token, callback_id=callback_id)
        )

    def last_text(self, chat_id: int) -> str:
        return self.transport.messages_to(chat_id)[-1].text


@pytest.fixture()
def services(connection_factory) -> Services:
    transport = LoggingTransport()
    notifier = Notifier(transport, max_workers=4)
    sessions = InMemorySessionStore()
    participants = ParticipantRepository(connection_factory=connection_factory)
    orders = GroupOrderRepository(connection_factory=connection_factory)
    catalog = CatalogManager(CatalogRepository(connection_factory=connection_factory))
    ledger = LedgerEngine(orders, notifier)
    registration = RegistrationWorkflow(participants, sessions, notifier)
    coordinator = GroupOrderCoordinator(orders, participants, catalog, ledger, sessions, notifier)
    bot = GroupOrderBot(
        participants=participants,
        registration=registration,
        catalog=catalog,
        coordinator=coordinator,
        ledger=ledger,
        sessions=sessions,
        notifier=notifier,
    )
    return Services(
        transport=transport,
        sessions=sessions,
        participants=participants,
        orders=orders,
        catalog=catalog,
        ledger=ledger,
        registration=registration,
        coordinator=coordinator,
        bot=bot,
    )


@pytest.fixture()
def admin(services):
    participant, _ = services.participants.create_admin_with_company(
        ADMIN_ID, "Alice", "+15550001", "Acme"
    )
    return participant


@pytest.fixture()
def worker(services):
    return services.participants.create_worker(WORKER_ID, "Bob", "+15550002")


@pytest.fixture()
def other_worker(services):
    return services.participants.create_worker(OTHER_WORKER_ID, "Carol", "+15550003")


@pytest.fixture()
def pasta_house(services, admin):
    restaurant = services.catalog.add_restaurant(admin, "Pasta House")
    services.catalog.add_menu_item(admin, restaurant.id, "Pasta", "12.50")
    services.catalog.add_menu_item(admin, restaurant.id, "Salad", "7.25")
    return restaurant
