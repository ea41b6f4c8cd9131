from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .catalog import CatalogManager
from .database import DatabaseError
from .errors import (
    AccessDeniedError,
    GroupOrderNotFoundError,
    GroupOrderUnavailableError,
    InputValidationError,
)
from .ledger import LedgerEngine
from .models import TARGET_STATUSES, GroupOrder, MenuItem, OrderStatus, Participant, Role
from .notifier import Action, Notifier
from .repository import GroupOrderRepository, ParticipantRepository
from .sessions import SessionStore
from .states import Expecting, SessionState
from .tokens import JoinOrder, encode
from .validation import (
    ORDER_LINE_EXAMPLE,
    ORDER_LINE_SYNTAX,
    format_money,
    merge_lines,
    parse_order_lines,
)

logger = logging.getLogger(__name__)

# Failures after which the worker may simply send the order again.
_RETRYABLE = (InputValidationError,) + DatabaseError


def new_group_order_id() -> str:
    return f"GO-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class Submission:
    group_order_id: str
    worker_id: int
    line_ids: Tuple[str, ...]
    total_cents: int


class GroupOrderCoordinator:
    def __init__(
        self,
        orders: GroupOrderRepository,
        participants: ParticipantRepository,
        catalog: CatalogManager,
        ledger: LedgerEngine,
        sessions: SessionStore,
        notifier: Notifier,
    ):
        self._orders = orders
        self._participants = participants
        self._catalog = catalog
        self._ledger = ledger
        self._sessions = sessions
        self._notifier = notifier

    def create_group_order(self, admin: Participant, restaurant_id: str) -> GroupOrder:
        """Open a group order and invite every worker to it.

        Invitations are best effort: a worker who cannot be reached is logged
        and skipped, the order exists either way.
        """
        restaurant = self._catalog.owned_restaurant(admin, restaurant_id)
        order = self._orders.create_group_order(new_group_order_id(), restaurant.id, admin.id)
        logger.info("Admin %s opened group order %s for %s", admin.id, order.id, restaurant.id)

        self._notifier.send(
            admin.id,
            f"Group order created for {restaurant.name}!\nGroup ID: {order.id}",
        )

        workers = self._participants.list_workers()
        results = self._notifier.broadcast(
            [worker.id for worker in workers],
            f"New group order from {restaurant.name}!\nGroup ID: {order.id}",
            actions=[[Action(label="Join Group Order", token=encode(JoinOrder(group_order_id=order.id)))]],
        )
        for worker_id, delivered in results.items():
            if not delivered:
                logger.warning("Invitation for %s not delivered to worker %s", order.id, worker_id)
        return order

    def join_group_order(self, worker: Participant, group_order_id: str, session_key: int) -> None:
        if worker.role is not Role.WORKER:
            raise AccessDeniedError("Only workers can join group orders.")
        order = self._orders.get_group_order(group_order_id)
        if order is None or order.status is not OrderStatus.OPEN:
            raise GroupOrderUnavailableError("This group order is not available.")
        menu = self._catalog.list_menu_items(order.restaurant_id)
        if not menu:
            raise GroupOrderUnavailableError("This restaurant has no menu items yet.")

        # Prices are frozen at join time; the submission is totalled against this.
        snapshot = tuple(
            {"id": item.id, "name": item.name, "price_cents": item.price_cents} for item in menu
        )
        self._sessions.set(
            session_key,
            SessionState(Expecting.ORDER_LINES, {"group_order_id": order.id, "menu": snapshot}),
        )
        self._notifier.send(session_key, _menu_prompt(order, menu))

    def submit_lines(self, worker: Participant, session_key: int, raw_text: str) -> Submission:
        state = self._sessions.take(session_key)
        if state is None or state.expecting is not Expecting.ORDER_LINES:
            raise InputValidationError("Your order session has expired. Please join the group order again.")

        group_order_id = state.get("group_order_id")
        menu = state.get("menu")
        try:
            requested = merge_lines(parse_order_lines(raw_text, len(menu)))
            lines = [(menu[line.index - 1]["id"], line.quantity) for line in requested]
            line_ids = self._orders.add_lines(group_order_id, worker.id, lines)
        except _RETRYABLE:
            self._sessions.set(session_key, state)
            raise

        total_cents = sum(menu[line.index - 1]["price_cents"] * line.quantity for line in requested)
        submission = Submission(
            group_order_id=group_order_id,
            worker_id=worker.id,
            line_ids=tuple(line_ids),
            total_cents=total_cents,
        )
        logger.info(
            "Worker %s added %d lines to %s (total %s)",
            worker.id,
            len(line_ids),
            group_order_id,
            format_money(total_cents),
        )

        summary = [f"{menu[line.index - 1]['name']} x{line.quantity}" for line in requested]
        admin = self._orders.owning_admin(group_order_id)
        if admin is not None:
            self._notifier.send(
                admin.id,
                f"New order in group {group_order_id}\n"
                f"Worker: {worker.name} (UUID: {worker.uuid})\n"
                + "\n".join(summary)
                + f"\nTotal: {format_money(total_cents)}",
            )
        self._notifier.send(
            session_key,
            f"Your order has been added to group order {group_order_id}.\nTotal: {format_money(total_cents)}",
        )
        return submission

    def list_group_orders(self, admin: Participant) -> List[GroupOrder]:
        return self._orders.list_for_admin(admin.id)

    def list_joined_group_orders(self, worker: Participant) -> List[GroupOrder]:
        return self._orders.list_joined(worker.id)

    def list_open_group_orders(self) -> List[GroupOrder]:
        return self._orders.list_open()

    def update_status(
        self,
        admin: Participant,
        group_order_id: str,
        new_status: str | OrderStatus,
        chat_id: int | None = None,
    ) -> GroupOrder:
        status = parse_target_status(new_status)
        if not admin.is_admin:
            raise AccessDeniedError("Only admins can change a group order's status.")

        if not self._orders.update_status(group_order_id, admin.id, status):
            if self._orders.get_group_order(group_order_id) is None:
                raise GroupOrderNotFoundError(f"Group order {group_order_id} not found.")
            raise AccessDeniedError("This group order belongs to another admin.")

        logger.info("Admin %s set group order %s to %s", admin.id, group_order_id, status.value)
        target = chat_id if chat_id is not None else admin.id
        self._notifier.send(target, f"Group order status updated to {status.value}")
        view = self._ledger.show_details(target, admin, group_order_id)
        return view.group_order


def parse_target_status(value: str | OrderStatus) -> OrderStatus:
    try:
        status = OrderStatus(value)
    except ValueError:
        raise InputValidationError(f"Unknown status {value!r}.") from None
    if status not in TARGET_STATUSES:
        raise InputValidationError(f"A group order cannot be set back to {status.value!r}.")
    return status


def _menu_prompt(order: GroupOrder, menu: Sequence[MenuItem]) -> str:
    numbered = [
        f"{position}. {item.name} - {format_money(item.price_cents)}"
        for position, item in enumerate(menu, start=1)
    ]
    return (
        f"Menu for {order.restaurant_name} (group order {order.id}):\n"
        + "\n".join(numbered)
        + f"\n\nEnter your order in the format:\n{ORDER_LINE_SYNTAX}\nExample: {ORDER_LINE_EXAMPLE}"
    )
