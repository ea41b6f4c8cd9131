from __future__ import annotations

import sqlite3

from group_order_service.models import Role
from group_order_service.states import Expecting
from group_order_service.tokens import RegisterRole, SelectCompany, encode

NEW_ADMIN = 501
NEW_WORKER = 502


def test_first_contact_offers_role_choice(services):
    services.text(NEW_WORKER, "hello")

    message = services.transport.messages_to(NEW_WORKER)[-1]
    tokens = [button["callback_data"] for row in message.reply_markup["inline_keyboard"] for button in row]
    assert tokens == ["registerRole_admin", "registerRole_worker"]
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.ROLE_CHOICE


def test_worker_registration_without_companies(services):
    services.text(NEW_WORKER, "/start")
    services.press(NEW_WORKER, encode(RegisterRole(role=Role.WORKER)))
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.NAME

    services.text(NEW_WORKER, "   ")
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.NAME
    assert "cannot be empty" in services.last_text(NEW_WORKER)

    services.text(NEW_WORKER, "Bob")
    services.text(NEW_WORKER, "555-1234")
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.PHONE
    assert "Invalid phone number" in services.last_text(NEW_WORKER)

    services.text(NEW_WORKER, "+15550002")

    worker = services.participants.get(NEW_WORKER)
    assert worker.role is Role.WORKER
    assert worker.name == "Bob"
    assert worker.company_id is None
    assert services.sessions.get(NEW_WORKER) is None
    last = services.transport.messages_to(NEW_WORKER)[-1]
    assert worker.uuid in last.text
    assert last.reply_markup["keyboard"][0] == ["Join Existing Orders"]


def test_admin_registration_creates_company(services):
    services.text(NEW_ADMIN, "hi")
    services.press(NEW_ADMIN, encode(RegisterRole(role=Role.ADMIN)))
    services.text(NEW_ADMIN, "Alice")
    services.text(NEW_ADMIN, "+15550001")
    assert services.sessions.get(NEW_ADMIN).expecting is Expecting.COMPANY
    assert services.participants.get(NEW_ADMIN) is None

    services.text(NEW_ADMIN, "Acme")

    admin = services.participants.get(NEW_ADMIN)
    assert admin.role is Role.ADMIN
    assert services.participants.get_company(admin.company_id).name == "Acme"
    assert services.sessions.get(NEW_ADMIN) is None
    assert services.transport.messages_to(NEW_ADMIN)[-1].reply_markup["keyboard"][0] == [
        "Add Restaurant",
        "Add Menu Item",
    ]


def test_worker_picks_company_when_one_exists(services, admin):
    services.text(NEW_WORKER, "hi")
    services.press(NEW_WORKER, encode(RegisterRole(role=Role.WORKER)))
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.AFFILIATION

    services.text(NEW_WORKER, "I typed instead")
    assert services.sessions.get(NEW_WORKER).expecting is Expecting.AFFILIATION

    services.press(NEW_WORKER, encode(SelectCompany(company_id=admin.company_id)))
    services.text(NEW_WORKER, "Bob")
    services.text(NEW_WORKER, "+15550002")

    assert services.participants.get(NEW_WORKER).company_id == admin.company_id


def test_store_failure_keeps_session(services, monkeypatch):
    services.text(NEW_WORKER, "hi")
    services.press(NEW_WORKER, encode(RegisterRole(role=Role.WORKER)))
    services.text(NEW_WORKER, "Bob")

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(services.participants, "create_worker", broken)
    services.text(NEW_WORKER, "+15550002")

    assert "Something went wrong" in services.last_text(NEW_WORKER)
    state = services.sessions.get(NEW_WORKER)
    assert state.expecting is Expecting.PHONE
    assert state.get("name") == "Bob"


def test_registered_participant_is_not_registered_twice(services, worker):
    services.press(worker.id, encode(RegisterRole(role=Role.ADMIN)))

    assert services.participants.get(worker.id).role is Role.WORKER
    assert "already registered" in services.last_text(worker.id)
