from __future__ import annotations

import logging

from .errors import InputValidationError, NotFoundError
from .events import InboundEvent
from .menus import menu_for
from .models import Participant, Role
from .notifier import Action, Notifier
from .repository import ParticipantRepository
from .sessions import SessionStore
from .states import Expecting, SessionState, is_valid_transition
from .tokens import RegisterRole, SelectCompany, encode
from .validation import require_text, validate_phone

logger = logging.getLogger(__name__)

ROLE_PROMPT = "Welcome! Please choose your role to register:"
NAME_PROMPT = "Please enter your full name."
PHONE_PROMPT = "Please enter your phone number (e.g., +1234567890)."
COMPANY_PROMPT = "Please enter the name of your company."
AFFILIATION_PROMPT = "Select the company you work for:"


class RegistrationWorkflow:
    """Turns an unknown sender into a Participant, one step per message.

    Invalid input raises ``InputValidationError`` without touching the
    session, so the caller re-prompts and the participant stays on the
    same step.
    """

    def __init__(self, participants: ParticipantRepository, sessions: SessionStore, notifier: Notifier):
        self._participants = participants
        self._sessions = sessions
        self._notifier = notifier

    def start(self, chat_id: int) -> None:
        self._sessions.set(chat_id, SessionState(Expecting.ROLE_CHOICE))
        self._send_role_choice(chat_id)

    def choose_role(self, event: InboundEvent, role: Role) -> None:
        # A stale role button restarts registration from the role choice.
        state = SessionState(Expecting.ROLE_CHOICE)
        if role is Role.WORKER:
            companies = self._participants.list_companies()
            if companies:
                self._advance(event.chat_id, state, Expecting.AFFILIATION, role=role.value)
                self._notifier.send(
                    event.chat_id,
                    AFFILIATION_PROMPT,
                    actions=[
                        [Action(label=company.name, token=encode(SelectCompany(company_id=company.id)))]
                        for company in companies
                    ],
                )
                return

        self._advance(event.chat_id, state, Expecting.NAME, role=role.value)
        self._notifier.send(
            event.chat_id, f"You are registering as a {role.value}. {NAME_PROMPT}"
        )

    def choose_company(self, event: InboundEvent, company_id: str) -> None:
        state = self._sessions.get(event.chat_id)
        if state is None or state.expecting is not Expecting.AFFILIATION:
            raise InputValidationError("Please start registration again with /start.")
        company = self._participants.get_company(company_id)
        if company is None:
            raise NotFoundError("That company no longer exists.")
        self._advance(event.chat_id, state, Expecting.NAME, company_id=company.id)
        self._notifier.send(event.chat_id, f"Company: {company.name}. {NAME_PROMPT}")

    def awaiting_selection(self, event: InboundEvent, state: SessionState) -> None:
        """Text arrived where a button was expected; offer the choice again."""
        if state.expecting is Expecting.AFFILIATION:
            self.choose_role(event, Role.WORKER)
            return
        self._send_role_choice(event.chat_id)

    def enter_name(self, event: InboundEvent, state: SessionState) -> None:
        name = require_text(event.text, "Name")
        self._advance(event.chat_id, state, Expecting.PHONE, name=name)
        self._notifier.send(event.chat_id, PHONE_PROMPT)

    def enter_phone(self, event: InboundEvent, state: SessionState) -> None:
        phone = validate_phone(event.text)
        role = Role(state.get("role"))
        if role is Role.ADMIN:
            self._advance(event.chat_id, state, Expecting.COMPANY, phone_number=phone)
            self._notifier.send(event.chat_id, COMPANY_PROMPT)
            return

        worker = self._participants.create_worker(
            event.sender_id,
            state.get("name"),
            phone,
            company_id=state.get("company_id"),
        )
        logger.info("Registered worker %s", worker.id)
        self._finish(event.chat_id, worker)

    def enter_company(self, event: InboundEvent, state: SessionState) -> None:
        company_name = require_text(event.text, "Company name")
        admin, company = self._participants.create_admin_with_company(
            event.sender_id,
            state.get("name"),
            state.get("phone_number"),
            company_name,
        )
        logger.info("Registered admin %s with company %s", admin.id, company.id)
        self._finish(event.chat_id, admin)

    def _advance(self, chat_id: int, state: SessionState, to_step: Expecting, **data) -> None:
        if not is_valid_transition(state.expecting, to_step):
            raise InputValidationError("Please start registration again with /start.")
        self._sessions.set(chat_id, state.advance(to_step, **data))

    def _finish(self, chat_id: int, participant: Participant) -> None:
        self._sessions.clear(chat_id)
        self._notifier.send(
            chat_id,
            f"Successfully registered as {participant.role.value}! Your UUID is: {participant.uuid}",
            keyboard=menu_for(participant.role),
        )

    def _send_role_choice(self, chat_id: int) -> None:
        self._notifier.send(
            chat_id,
            ROLE_PROMPT,
            actions=[
                [
                    Action(label="Admin", token=encode(RegisterRole(role=Role.ADMIN))),
                    Action(label="Worker", token=encode(RegisterRole(role=Role.WORKER))),
                ]
            ],
        )
