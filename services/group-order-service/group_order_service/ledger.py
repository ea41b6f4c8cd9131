from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import AccessDeniedError, GroupOrderNotFoundError, NotFoundError
from .models import (
    TARGET_STATUSES,
    GroupOrder,
    OrderLine,
    Participant,
    PaymentToggle,
)
from .notifier import Action, Notifier
from .repository import GroupOrderRepository
from .tokens import SetStatus, TogglePaid, encode
from .validation import format_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerLedger:
    worker: Participant
    lines: Tuple[OrderLine, ...]
    total_cents: int

    @property
    def is_paid(self) -> bool:
        return all(line.is_paid for line in self.lines)

    @property
    def paid_at(self) -> Optional[str]:
        return self.lines[0].paid_at if self.is_paid else None


@dataclass(frozen=True)
class LedgerView:
    group_order: GroupOrder
    workers: Tuple[WorkerLedger, ...]
    actions: Tuple[Tuple[Action, ...], ...]

    @property
    def total_cents(self) -> int:
        return sum(entry.total_cents for entry in self.workers)

    def for_worker(self, worker_id: int) -> Optional[WorkerLedger]:
        for entry in self.workers:
            if entry.worker.id == worker_id:
                return entry
        return None


class LedgerEngine:
    """Per-worker aggregation of a group order, payment flags and the detail view."""

    def __init__(self, repository: GroupOrderRepository, notifier: Notifier):
        self._repo = repository
        self._notifier = notifier

    def view_details(self, group_order_id: str) -> LedgerView:
        order = self._repo.get_group_order(group_order_id)
        if order is None:
            raise GroupOrderNotFoundError(f"Group order {group_order_id} not found.")

        lines_by_worker: Dict[int, List[OrderLine]] = {}
        for line in self._repo.list_lines(group_order_id):
            lines_by_worker.setdefault(line.worker_id, []).append(line)
        totals = self._repo.worker_totals(group_order_id)

        workers = tuple(
            WorkerLedger(
                worker=participant,
                lines=tuple(lines_by_worker.get(participant.id, ())),
                total_cents=totals.get(participant.id, 0),
            )
            for participant in self._repo.participants_in(group_order_id)
        )

        actions: List[Tuple[Action, ...]] = [
            (
                Action(
                    label=f"Toggle Paid Status for {entry.worker.name}",
                    token=encode(TogglePaid(group_order_id=order.id, worker_id=entry.worker.id)),
                ),
            )
            for entry in workers
        ]
        actions.extend(
            (Action(label=status.value, token=encode(SetStatus(group_order_id=order.id, status=status))),)
            for status in TARGET_STATUSES
        )
        return LedgerView(group_order=order, workers=workers, actions=tuple(actions))

    def toggle_paid(self, group_order_id: str, worker_id: int) -> PaymentToggle:
        toggle = self._repo.toggle_paid(group_order_id, worker_id)
        logger.info(
            "Group order %s: worker %s marked %s (%d lines)",
            group_order_id,
            worker_id,
            "paid" if toggle.is_paid else "unpaid",
            toggle.lines_updated,
        )
        return toggle

    def require_owner(self, admin: Participant, group_order_id: str) -> GroupOrder:
        order = self._repo.get_group_order(group_order_id)
        if order is None:
            raise GroupOrderNotFoundError(f"Group order {group_order_id} not found.")
        owner = self._repo.owning_admin(group_order_id)
        if not admin.is_admin or owner is None or owner.id != admin.id:
            raise AccessDeniedError("This group order belongs to another admin.")
        return order

    def show_details(self, chat_id: int, viewer: Participant, group_order_id: str) -> LedgerView:
        """Send the detail view: everything for the owning admin, own lines for a worker."""
        if viewer.is_admin:
            self.require_owner(viewer, group_order_id)
            view = self.view_details(group_order_id)
            self._notifier.send(chat_id, render_admin_view(view), actions=view.actions)
            return view

        view = self.view_details(group_order_id)
        entry = view.for_worker(viewer.id)
        if entry is None:
            raise NotFoundError("You have not joined this group order.")
        self._notifier.send(chat_id, render_worker_view(view.group_order, entry))
        return view


def _header(order: GroupOrder) -> List[str]:
    return [
        "Group Order Details",
        f"Group ID: {order.id}",
        f"Status: {order.status.value}",
        f"Restaurant: {order.restaurant_name}",
        "",
    ]


def _line_text(line: OrderLine) -> List[str]:
    return [
        f"  • {line.item_name} x{line.quantity} - {format_money(line.line_total_cents)}",
        f"    Status: {'Paid' if line.is_paid else 'Unpaid'}",
    ]


def render_admin_view(view: LedgerView) -> str:
    text = _header(view.group_order)
    if not view.workers:
        text.append("No worker has joined yet.")
    for entry in view.workers:
        text.append(f"Worker: {entry.worker.name} (UUID: {entry.worker.uuid})")
        for line in entry.lines:
            text.extend(_line_text(line))
        text.append(f"  Total: {format_money(entry.total_cents)} ({'Paid' if entry.is_paid else 'Unpaid'})")
        text.append("")
    text.append(f"Order total: {format_money(view.total_cents)}")
    return "\n".join(text)


def render_worker_view(order: GroupOrder, entry: WorkerLedger) -> str:
    text = _header(order)
    for line in entry.lines:
        text.extend(_line_text(line))
    text.append(f"Your total: {format_money(entry.total_cents)} ({'Paid' if entry.is_paid else 'Unpaid'})")
    return "\n".join(text)
