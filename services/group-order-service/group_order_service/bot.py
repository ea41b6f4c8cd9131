from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from . import menus
from .catalog import CatalogManager
from .coordinator import GroupOrderCoordinator
from .database import DatabaseError
from .errors import GroupOrderError, InputValidationError
from .events import InboundEvent
from .ledger import LedgerEngine
from .models import Participant, Role
from .notifier import Action, Notifier
from .registration import RegistrationWorkflow
from .repository import ParticipantRepository
from .sessions import SessionStore
from .states import Expecting, SessionState, Workflow
from .tokens import (
    AddMenuItemFor,
    Command,
    CreateOrderFor,
    JoinOrder,
    RegisterRole,
    SelectCompany,
    SelectRestaurant,
    SetStatus,
    TogglePaid,
    ViewDetails,
    encode,
    parse,
)
from .validation import format_money, split_menu_item_input

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."

StepHandler = Callable[[InboundEvent, Optional[Participant], SessionState], None]
CommandHandler = Callable[[InboundEvent, Optional[Participant], Command], None]
MenuHandler = Callable[[InboundEvent, Participant], None]


class GroupOrderBot:
    """Routes inbound events to the workflow that owns them.

    Unknown senders go through registration. Registered participants are
    routed by button command, by role menu entry, or by the step their
    session is waiting in. A menu entry always replaces an unfinished
    session.
    """

    def __init__(
        self,
        participants: ParticipantRepository,
        registration: RegistrationWorkflow,
        catalog: CatalogManager,
        coordinator: GroupOrderCoordinator,
        ledger: LedgerEngine,
        sessions: SessionStore,
        notifier: Notifier,
    ):
        self._participants = participants
        self._registration = registration
        self._catalog = catalog
        self._coordinator = coordinator
        self._ledger = ledger
        self._sessions = sessions
        self._notifier = notifier

        self.step_handlers: Dict[Expecting, StepHandler] = {
            Expecting.ROLE_CHOICE: self._on_selection_expected,
            Expecting.AFFILIATION: self._on_selection_expected,
            Expecting.NAME: self._on_name,
            Expecting.PHONE: self._on_phone,
            Expecting.COMPANY: self._on_company,
            Expecting.RESTAURANT_NAME: self._on_restaurant_name,
            Expecting.MENU_ITEM: self._on_menu_item,
            Expecting.ORDER_LINES: self._on_order_lines,
        }
        self.command_handlers: Dict[type, CommandHandler] = {
            RegisterRole: self._on_register_role,
            SelectCompany: self._on_select_company,
            SelectRestaurant: self._on_select_restaurant,
            AddMenuItemFor: self._on_add_menu_item_for,
            CreateOrderFor: self._on_create_order_for,
            JoinOrder: self._on_join_order,
            ViewDetails: self._on_view_details,
            TogglePaid: self._on_toggle_paid,
            SetStatus: self._on_set_status,
        }
        self.menu_handlers: Dict[Role, Dict[str, MenuHandler]] = {
            Role.ADMIN: {
                menus.ADD_RESTAURANT: self._on_add_restaurant,
                menus.ADD_MENU_ITEM: self._on_add_menu_item,
                menus.MY_RESTAURANTS: self._on_my_restaurants,
                menus.CREATE_GROUP_ORDER: self._on_create_group_order,
                menus.VIEW_GROUP_ORDERS: self._on_view_group_orders,
                menus.LOGOUT: self._on_logout,
                menus.START: self._on_start,
            },
            Role.WORKER: {
                menus.JOIN_EXISTING_ORDERS: self._on_join_existing_orders,
                menus.VIEW_MY_GROUP_ORDERS: self._on_view_my_group_orders,
                menus.LOGOUT: self._on_logout,
                menus.START: self._on_start,
            },
        }

    def handle(self, event: InboundEvent) -> None:
        """Process one event; failures are answered in the chat, never raised."""
        try:
            self._route(event)
        except InputValidationError as exc:
            logger.debug("Rejected input from %s: %s", event.sender_id, exc.message)
            self._notifier.send(event.chat_id, exc.message)
        except GroupOrderError as exc:
            logger.info("Denied request from %s: %s", event.sender_id, exc.message)
            self._notifier.send(event.chat_id, exc.message)
        except DatabaseError:
            logger.exception("Store failure while handling event from %s", event.sender_id)
            self._notifier.send(event.chat_id, GENERIC_FAILURE)
        except Exception:
            logger.exception("Unhandled error while handling event from %s", event.sender_id)
            self._notifier.send(event.chat_id, GENERIC_FAILURE)
        finally:
            self._notifier.acknowledge(event.callback_id)

    def _route(self, event: InboundEvent) -> None:
        participant = self._participants.get(event.sender_id)

        if event.is_selection:
            command = parse(event.callback_data)
            if participant is None and not isinstance(command, (RegisterRole, SelectCompany)):
                self._registration.start(event.chat_id)
                return
            self.command_handlers[type(command)](event, participant, command)
            return

        text = (event.text or "").strip()
        if participant is None:
            state = self._sessions.get(event.chat_id)
            if state is None or state.expecting.workflow is not Workflow.REGISTRATION or text == menus.START:
                self._registration.start(event.chat_id)
                return
            self.step_handlers[state.expecting](event, None, state)
            return

        menu_handler = self.menu_handlers[participant.role].get(text)
        if menu_handler is not None:
            self._sessions.clear(event.chat_id)
            menu_handler(event, participant)
            return

        state = self._sessions.get(event.chat_id)
        if state is None or state.expecting.workflow is Workflow.REGISTRATION:
            self._show_menu(event.chat_id, participant, "Please choose an option from the menu.")
            return
        self.step_handlers[state.expecting](event, participant, state)

    def _show_menu(self, chat_id: int, participant: Participant, text: str = "Select an option:") -> None:
        self._notifier.send(chat_id, text, keyboard=menus.menu_for(participant.role))

    # Conversation steps

    def _on_selection_expected(self, event, participant, state):
        self._registration.awaiting_selection(event, state)

    def _on_name(self, event, participant, state):
        self._registration.enter_name(event, state)

    def _on_phone(self, event, participant, state):
        self._registration.enter_phone(event, state)

    def _on_company(self, event, participant, state):
        self._registration.enter_company(event, state)

    def _on_restaurant_name(self, event, participant, state):
        restaurant = self._catalog.add_restaurant(participant, event.text)
        self._sessions.clear(event.chat_id)
        self._notifier.send(event.chat_id, f"Restaurant '{restaurant.name}' added successfully!")

    def _on_menu_item(self, event, participant, state):
        name, price = split_menu_item_input(event.text)
        item = self._catalog.add_menu_item(participant, state.get("restaurant_id"), name, price)
        self._sessions.clear(event.chat_id)
        self._notifier.send(
            event.chat_id,
            f"Menu item '{item.name}' added at {format_money(item.price_cents)}.",
        )

    def _on_order_lines(self, event, participant, state):
        self._coordinator.submit_lines(participant, event.chat_id, event.text)

    # Button commands

    def _on_register_role(self, event, participant, command: RegisterRole):
        if participant is not None:
            self._already_registered(event.chat_id, participant)
            return
        self._registration.choose_role(event, command.role)

    def _on_select_company(self, event, participant, command: SelectCompany):
        if participant is not None:
            self._already_registered(event.chat_id, participant)
            return
        self._registration.choose_company(event, command.company_id)

    def _on_select_restaurant(self, event, participant, command: SelectRestaurant):
        restaurant = self._catalog.owned_restaurant(participant, command.restaurant_id)
        items = self._catalog.list_menu_items(restaurant.id)
        lines = [restaurant.name]
        lines.extend(
            f"{position}. {item.name} - {format_money(item.price_cents)}"
            for position, item in enumerate(items, start=1)
        )
        if not items:
            lines.append("No menu items yet.")
        self._notifier.send(
            event.chat_id,
            "\n".join(lines),
            actions=[
                [Action(label="Add Menu Item", token=encode(AddMenuItemFor(restaurant_id=restaurant.id)))],
                [Action(label="Create Group Order", token=encode(CreateOrderFor(restaurant_id=restaurant.id)))],
            ],
        )

    def _on_add_menu_item_for(self, event, participant, command: AddMenuItemFor):
        restaurant = self._catalog.owned_restaurant(participant, command.restaurant_id)
        self._sessions.set(
            event.chat_id,
            SessionState(Expecting.MENU_ITEM, {"restaurant_id": restaurant.id}),
        )
        self._notifier.send(
            event.chat_id,
            f"Enter the menu item for {restaurant.name} as: Item Name, Price (e.g., Pasta, 12.50)",
        )

    def _on_create_order_for(self, event, participant, command: CreateOrderFor):
        self._coordinator.create_group_order(participant, command.restaurant_id)

    def _on_join_order(self, event, participant, command: JoinOrder):
        self._coordinator.join_group_order(participant, command.group_order_id, event.chat_id)

    def _on_view_details(self, event, participant, command: ViewDetails):
        self._ledger.show_details(event.chat_id, participant, command.group_order_id)

    def _on_toggle_paid(self, event, participant, command: TogglePaid):
        self._ledger.require_owner(participant, command.group_order_id)
        toggle = self._ledger.toggle_paid(command.group_order_id, command.worker_id)
        worker = self._participants.get(command.worker_id)
        name = worker.name if worker is not None else str(command.worker_id)
        self._notifier.send(
            event.chat_id,
            f"Paid status for {name} updated to {'Paid' if toggle.is_paid else 'Unpaid'}",
        )
        self._ledger.show_details(event.chat_id, participant, command.group_order_id)

    def _on_set_status(self, event, participant, command: SetStatus):
        self._coordinator.update_status(
            participant, command.group_order_id, command.status, chat_id=event.chat_id
        )

    # Role menus

    def _on_add_restaurant(self, event, participant):
        self._sessions.set(event.chat_id, SessionState(Expecting.RESTAURANT_NAME))
        self._notifier.send(event.chat_id, "Please enter the restaurant name:")

    def _on_add_menu_item(self, event, participant):
        self._offer_restaurants(
            event.chat_id, participant, "Select a restaurant to add a menu item to:", AddMenuItemFor
        )

    def _on_my_restaurants(self, event, participant):
        self._offer_restaurants(event.chat_id, participant, "Your restaurants:", SelectRestaurant)

    def _on_create_group_order(self, event, participant):
        self._offer_restaurants(
            event.chat_id, participant, "Select a restaurant for the group order:", CreateOrderFor
        )

    def _on_view_group_orders(self, event, participant):
        orders = self._coordinator.list_group_orders(participant)
        if not orders:
            self._notifier.send(event.chat_id, "No group orders found.")
            return
        self._notifier.send(
            event.chat_id,
            "Select a group order to view:",
            actions=[
                [Action(
                    label=f"{order.restaurant_name} - {order.id} ({order.status.value})",
                    token=encode(ViewDetails(group_order_id=order.id)),
                )]
                for order in orders
            ],
        )

    def _on_join_existing_orders(self, event, participant):
        orders = self._coordinator.list_open_group_orders()
        if not orders:
            self._notifier.send(event.chat_id, "No open group orders available.")
            return
        self._notifier.send(
            event.chat_id,
            "Select a group order to join:",
            actions=[
                [Action(
                    label=f"Join {order.restaurant_name} Group Order ({order.id})",
                    token=encode(JoinOrder(group_order_id=order.id)),
                )]
                for order in orders
            ],
        )

    def _on_view_my_group_orders(self, event, participant):
        orders = self._coordinator.list_joined_group_orders(participant)
        if not orders:
            self._notifier.send(event.chat_id, "No group orders found.")
            return
        self._notifier.send(
            event.chat_id,
            "Select a group order to view:",
            actions=[
                [Action(
                    label=f"View {order.restaurant_name} Group Order ({order.id})",
                    token=encode(ViewDetails(group_order_id=order.id)),
                )]
                for order in orders
            ],
        )

    def _on_logout(self, event, participant):
        self._show_menu(event.chat_id, participant, "Logged out successfully.")

    def _on_start(self, event, participant):
        self._show_menu(event.chat_id, participant)

    def _offer_restaurants(self, chat_id: int, participant: Participant, text: str, command_type) -> None:
        restaurants = self._catalog.list_restaurants(participant)
        if not restaurants:
            self._notifier.send(chat_id, "You have no restaurants yet. Use 'Add Restaurant' first.")
            return
        self._notifier.send(
            chat_id,
            text,
            actions=[
                [Action(label=restaurant.name, token=encode(command_type(restaurant_id=restaurant.id)))]
                for restaurant in restaurants
            ],
        )

    def _already_registered(self, chat_id: int, participant: Participant) -> None:
        self._show_menu(
            chat_id, participant, f"You are already registered as {participant.role.value}."
        )
